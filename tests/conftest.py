"""Pytest configuration and shared fixtures for StudyHub tests."""

import os
import sys
import tempfile

# Settings load at import time, so the test profile must be in place first
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="studyhub-tests-")
os.environ["JWT_SECRET"] = "test-secret-0123456789abcdef"

from collections.abc import Generator  # noqa: E402
from datetime import date  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from loguru import logger  # noqa: E402

from studyhub.api import create_app  # noqa: E402
from studyhub.auth import UserService  # noqa: E402
from studyhub.config import Settings, settings  # noqa: E402
from studyhub.database import DatabaseManager  # noqa: E402
from studyhub.models import GoalRow  # noqa: E402
from studyhub.utils import utc_now_iso  # noqa: E402

# =============================================================================
# Test Configuration
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Configure loguru for tests to avoid I/O errors."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
    )
    yield
    logger.remove()


@pytest.fixture(scope="function", autouse=True)
def reset_loguru():
    """Reset loguru handlers before each test to prevent I/O errors."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
    )
    yield
    logger.remove()


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing at a per-test data directory."""
    return Settings(
        environment="testing",
        data_dir=tmp_path,
        JWT_SECRET="test-secret-0123456789abcdef",
    )  # type: ignore[call-arg]


@pytest.fixture
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Point the global settings (used by the CLI) at a per-test directory."""
    monkeypatch.setattr(settings, "data_dir", tmp_path)
    monkeypatch.setattr(settings, "database_path", tmp_path / "studyhub.db")
    monkeypatch.setattr(settings, "backup_dir", tmp_path / "backups")
    return settings


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def db(tmp_path: Path) -> Generator[DatabaseManager, None, None]:
    """Initialized database in a temporary directory."""
    manager = DatabaseManager(database_path=tmp_path / "studyhub.db")
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def user_id(db: DatabaseManager) -> str:
    """An account in the test database."""
    return UserService(db).register("alice", "alice@example.com", "password1").id


@pytest.fixture
def other_user_id(db: DatabaseManager) -> str:
    """A second, unrelated account."""
    return UserService(db).register("bob", "bob@example.com", "password2").id


@pytest.fixture
def make_goal(db: DatabaseManager):
    """Factory inserting goals directly, bypassing the lifecycle policy."""

    def _make(owner: str, **overrides: Any) -> GoalRow:
        values: dict[str, Any] = {
            "title": "Learn SQL",
            "description": "Finish the course",
            "type": "short_term",
            "start_date": "2024-01-01",
            "end_date": "2024-02-01",
            "priority": "medium",
            "status": "not_started",
            "progress": 0,
            "points": 0,
            "created_at": utc_now_iso(),
        }
        values.update(overrides)
        with db.session() as session:
            goal = GoalRow(user_id=owner, **values)
            session.add(goal)
            session.commit()
            session.refresh(goal)
            return goal

    return _make


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture
def app(test_settings: Settings, db: DatabaseManager):
    """FastAPI application wired to the test database."""
    return create_app(test_settings, db=db)


@pytest.fixture
def anon_client(app) -> TestClient:
    """Client without a session."""
    return TestClient(app)


@pytest.fixture
def client(app) -> TestClient:
    """Client logged in as a freshly registered user."""
    c = TestClient(app)
    response = c.post(
        "/api/auth/register",
        json={"username": "alice", "email": "alice@example.com", "password": "password1"},
    )
    assert response.status_code == 201
    return c


@pytest.fixture
def second_client(app) -> TestClient:
    """Client logged in as another user."""
    c = TestClient(app)
    response = c.post(
        "/api/auth/register",
        json={"username": "bob", "email": "bob@example.com", "password": "password2"},
    )
    assert response.status_code == 201
    return c


@pytest.fixture
def goal_payload() -> dict[str, Any]:
    """Valid goal creation body (camelCase, as sent by the web client)."""
    return {
        "title": "Read SICP",
        "description": "Chapters 1-3",
        "type": "long_term",
        "startDate": "2024-01-01",
        "endDate": "2024-06-30",
        "priority": "high",
        "category": "cs",
        "milestones": [{"title": "Chapter 1"}],
    }


@pytest.fixture
def today() -> date:
    return date(2024, 3, 10)
