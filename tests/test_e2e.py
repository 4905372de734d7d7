"""End-to-end tests for StudyHub.

These tests verify complete user workflows from start to finish.
"""

import pytest
from fastapi.testclient import TestClient
from typer.testing import CliRunner

from studyhub.api import create_app
from studyhub.backup import latest_backup
from studyhub.cli import app as cli_app
from studyhub.database import DatabaseManager

runner = CliRunner()


@pytest.mark.e2e
class TestCompleteWorkflow:
    """End-to-end tests for complete workflows."""

    def test_goal_lifecycle_workflow(self, client, goal_payload):
        """Create goals, move them through their lifecycle, then read the statistics."""
        long_goal = client.post("/api/goals", json={**goal_payload, "title": "A", "type": "long_term"}).json()
        short_goal = client.post("/api/goals", json={**goal_payload, "title": "B", "type": "short_term"}).json()
        assert long_goal["points"] == short_goal["points"] == 0

        started = client.put("/api/goals", json={"id": long_goal["id"], "status": "in_progress", "progress": 50})
        assert started.json()["points"] == 0

        completed = client.put("/api/goals", json={"id": long_goal["id"], "status": "completed", "progress": 100})
        assert completed.json()["points"] == 100

        short_done = client.put("/api/goals", json={"id": short_goal["id"], "status": "completed"})
        assert short_done.json()["points"] == 50

        listing = client.get("/api/goals").json()
        assert sum(g["points"] for g in listing["goals"]) == 150

        stats = client.get("/api/projects/statistics").json()
        assert stats["totalGoals"] == 2
        assert stats["completedGoals"] == 2
        assert stats["completionRate"] == 100.0
        assert stats["categoryStats"]["cs"]["completed"] == 2

        report = client.post(
            "/api/export",
            json={"type": "monthly", "format": "html", "startDate": "2000-01-01", "endDate": "2999-12-31"},
        )
        assert report.status_code == 200
        assert "A - completed on" in report.text
        assert "B - completed on" in report.text

    def test_users_are_isolated(self, client, second_client, goal_payload):
        """One user's goals are invisible and untouchable for another."""
        goal = client.post("/api/goals", json=goal_payload).json()

        assert second_client.get("/api/goals").json()["goals"] == []
        assert second_client.put("/api/goals", json={"id": goal["id"], "status": "completed"}).status_code == 404
        assert second_client.delete("/api/goals", params={"id": goal["id"]}).status_code == 404
        assert second_client.get("/api/projects/statistics").json()["totalGoals"] == 0

        mine = client.get("/api/goals").json()["goals"]
        assert [g["status"] for g in mine] == ["not_started"]

    def test_cli_backup_restore_workflow(self, isolated_settings, goal_payload):
        """init -> create-user -> use the API -> backup -> more changes -> restore."""
        assert runner.invoke(cli_app, ["init"]).exit_code == 0
        result = runner.invoke(cli_app, ["create-user", "alice", "alice@example.com", "--password", "password1"])
        assert result.exit_code == 0

        db = DatabaseManager(isolated_settings.database_path)
        db.initialize()
        client = TestClient(create_app(isolated_settings, db=db))
        assert client.post("/api/auth/login", json={"username": "alice", "password": "password1"}).status_code == 200
        client.post("/api/goals", json={**goal_payload, "title": "Kept"})

        assert runner.invoke(cli_app, ["backup"]).exit_code == 0
        assert latest_backup(isolated_settings.backup_dir) is not None

        client.post("/api/goals", json={**goal_payload, "title": "Lost"})
        assert client.get("/api/goals").json()["pagination"]["total"] == 2

        assert runner.invoke(cli_app, ["restore", "--yes"]).exit_code == 0

        titles = [g["title"] for g in client.get("/api/goals").json()["goals"]]
        assert titles == ["Kept"]
        db.close()
