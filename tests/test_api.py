"""Tests for the HTTP API."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from studyhub.api import create_app
from studyhub.auth import TOKEN_COOKIE
from studyhub.errors import UnauthorizedError
from studyhub.models import Report, UserIdentity
from studyhub.utils import utc_now

# =============================================================================
# Helpers
# =============================================================================


def _create_goal(client: TestClient, payload: dict, **overrides) -> dict:
    response = client.post("/api/goals", json={**payload, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


# =============================================================================
# Auth
# =============================================================================


class TestAuthEndpoints:
    """Tests for registration, login and logout."""

    def test_register_sets_cookie(self, anon_client):
        response = anon_client.post(
            "/api/auth/register",
            json={"username": "carol", "email": "carol@example.com", "password": "password3"},
        )

        assert response.status_code == 201
        assert response.json() == {"success": True, "message": "Registration successful"}
        assert TOKEN_COOKIE in response.cookies
        assert "httponly" in response.headers["set-cookie"].lower()

    def test_register_duplicate(self, client, anon_client):
        response = anon_client.post(
            "/api/auth/register",
            json={"username": "alice", "email": "new@example.com", "password": "password1"},
        )

        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.parametrize(
        "body",
        [
            {"username": "al", "email": "al@example.com", "password": "password1"},
            {"username": "alice", "email": "not-an-email", "password": "password1"},
            {"username": "alice", "email": "alice@example.com", "password": "123"},
            {"username": "alice", "email": "alice@example.com"},
            {"username": "alice", "email": "alice@example.com", "password": "x" * 100},
        ],
    )
    def test_register_invalid(self, anon_client, body):
        response = anon_client.post("/api/auth/register", json=body)

        assert response.status_code == 400
        assert response.json()["details"]

    def test_login(self, client, anon_client):
        response = anon_client.post("/api/auth/login", json={"username": "alice", "password": "password1"})

        assert response.status_code == 200
        assert TOKEN_COOKIE in response.cookies

    def test_login_wrong_password(self, client, anon_client):
        wrong = anon_client.post("/api/auth/login", json={"username": "alice", "password": "nope"})
        unknown = anon_client.post("/api/auth/login", json={"username": "nobody", "password": "nope"})

        assert wrong.status_code == 401
        assert unknown.status_code == 401
        assert wrong.json() == unknown.json()

    def test_login_missing_fields(self, anon_client):
        response = anon_client.post("/api/auth/login", json={"username": "alice"})
        assert response.status_code == 400

    def test_logout_clears_cookie(self, client):
        response = client.post("/api/auth/logout")

        assert response.status_code == 200
        assert client.get("/api/goals").status_code == 401

    def test_bearer_token(self, app, client):
        token = client.cookies.get(TOKEN_COOKIE)
        bearer = TestClient(app)

        response = bearer.get("/api/goals", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200


class TestAuthGate:
    """Every data endpoint refuses anonymous callers."""

    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("get", "/api/goals"),
            ("post", "/api/goals"),
            ("put", "/api/goals"),
            ("delete", "/api/goals?id=x"),
            ("post", "/api/export"),
            ("get", "/api/statistics"),
            ("get", "/api/projects/statistics"),
            ("get", "/api/notes"),
            ("get", "/api/diaries"),
            ("get", "/api/books"),
            ("get", "/api/study-records"),
        ],
    )
    def test_anonymous_is_401(self, anon_client, method, path):
        response = getattr(anon_client, method)(path)

        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_invalid_token_is_401(self, anon_client):
        anon_client.cookies.set(TOKEN_COOKIE, "garbage")
        assert anon_client.get("/api/goals").status_code == 401

    def test_custom_identity_resolver(self, test_settings, db, user_id):
        class HeaderResolver:
            def resolve_identity(self, request):
                if request.headers.get("x-user") != "alice":
                    raise UnauthorizedError()
                return UserIdentity(user_id=user_id, username="alice")

        client = TestClient(create_app(test_settings, db=db, identity_resolver=HeaderResolver()))

        assert client.get("/api/goals").status_code == 401
        assert client.get("/api/goals", headers={"x-user": "alice"}).status_code == 200


# =============================================================================
# Goals
# =============================================================================


class TestGoalEndpoints:
    """Tests for goal CRUD over HTTP."""

    def test_create_forces_defaults(self, client, goal_payload):
        goal = _create_goal(client, goal_payload, status="completed", progress=90, points=500)

        assert goal["status"] == "not_started"
        assert goal["progress"] == 0
        assert goal["points"] == 0
        assert goal["type"] == "long_term"
        assert goal["startDate"] == "2024-01-01"
        assert goal["category"] == "cs"
        assert goal["milestones"][0]["title"] == "Chapter 1"

    def test_create_invalid(self, client, goal_payload):
        response = client.post("/api/goals", json={**goal_payload, "priority": "urgent"})

        assert response.status_code == 400
        assert any(d["field"] == "priority" for d in response.json()["details"])

    def test_list_pagination(self, client, goal_payload):
        for i in range(12):
            _create_goal(client, goal_payload, title=f"goal {i}")

        first = client.get("/api/goals").json()
        second = client.get("/api/goals", params={"page": 2, "limit": 10}).json()

        assert first["pagination"] == {"total": 12, "page": 1, "totalPages": 2}
        assert len(first["goals"]) == 10
        assert first["goals"][0]["title"] == "goal 11"
        assert [g["title"] for g in second["goals"]] == ["goal 1", "goal 0"]

    def test_list_filters(self, client, goal_payload):
        _create_goal(client, goal_payload, title="long", type="long_term")
        _create_goal(client, goal_payload, title="short 1", type="short_term")
        _create_goal(client, goal_payload, title="short 2", type="short_term")

        body = client.get("/api/goals", params={"type": "short_term"}).json()

        assert [g["title"] for g in body["goals"]] == ["short 2", "short 1"]
        assert all(g["type"] == "short_term" for g in body["goals"])
        assert body["pagination"]["total"] == 2

        by_status = client.get("/api/goals", params={"status": "completed"}).json()
        assert by_status["goals"] == []

    @pytest.mark.parametrize("params", [{"page": 0}, {"limit": 0}, {"limit": 1000}, {"page": "abc"}])
    def test_list_bad_paging(self, client, params):
        assert client.get("/api/goals", params=params).status_code == 400

    def test_list_only_own(self, client, second_client, goal_payload):
        _create_goal(client, goal_payload)

        assert second_client.get("/api/goals").json()["pagination"]["total"] == 0

    def test_update_and_complete(self, client, goal_payload):
        goal = _create_goal(client, goal_payload)

        started = client.put("/api/goals", json={"id": goal["id"], "status": "in_progress", "progress": 30})
        assert started.status_code == 200
        assert started.json()["points"] == 0
        assert started.json()["progress"] == 30

        done = client.put("/api/goals", json={"id": goal["id"], "status": "completed", "progress": 100})
        assert done.json()["points"] == 100

        again = client.put("/api/goals", json={"id": goal["id"], "status": "completed", "title": "Renamed"})
        assert again.json()["points"] == 100
        assert again.json()["title"] == "Renamed"

    def test_update_ignores_points(self, client, goal_payload):
        goal = _create_goal(client, goal_payload)

        response = client.put("/api/goals", json={"id": goal["id"], "points": 9999})

        assert response.status_code == 200
        assert response.json()["points"] == 0

    def test_update_progress_out_of_range(self, client, goal_payload):
        goal = _create_goal(client, goal_payload)

        response = client.put("/api/goals", json={"id": goal["id"], "progress": 150})

        assert response.status_code == 400
        assert "between 0 and 100" in response.json()["message"]

    def test_update_foreign_is_404(self, client, second_client, goal_payload):
        goal = _create_goal(client, goal_payload)

        response = second_client.put("/api/goals", json={"id": goal["id"], "title": "mine now"})

        assert response.status_code == 404
        assert client.get("/api/goals").json()["goals"][0]["title"] == goal_payload["title"]

    def test_update_missing_is_404(self, client):
        assert client.put("/api/goals", json={"id": "missing", "title": "x"}).status_code == 404

    def test_delete(self, client, goal_payload):
        goal = _create_goal(client, goal_payload)

        response = client.delete("/api/goals", params={"id": goal["id"]})

        assert response.status_code == 200
        assert client.get("/api/goals").json()["pagination"]["total"] == 0

    def test_delete_without_id_is_400(self, client):
        assert client.delete("/api/goals").status_code == 400

    def test_delete_foreign_and_missing_are_404(self, client, second_client, goal_payload):
        goal = _create_goal(client, goal_payload)

        foreign = second_client.delete("/api/goals", params={"id": goal["id"]})
        missing = client.delete("/api/goals", params={"id": "missing"})

        assert foreign.status_code == 404
        assert missing.status_code == 404
        assert foreign.json() == missing.json()
        assert client.get("/api/goals").json()["pagination"]["total"] == 1


# =============================================================================
# Statistics and Export
# =============================================================================


class TestStatisticsEndpoints:
    def test_dashboard_empty(self, client):
        body = client.get("/api/statistics").json()

        assert body["completionRate"] == 0
        assert body["totalStudyTime"] == 0
        assert len(body["studyTimeData"]["labels"]) == 7

    def test_project_statistics(self, client, goal_payload):
        goal = _create_goal(client, goal_payload, category="math")
        _create_goal(client, goal_payload, category=None)
        client.put("/api/goals", json={"id": goal["id"], "status": "completed"})

        body = client.get("/api/projects/statistics").json()

        assert body["totalGoals"] == 2
        assert body["completedGoals"] == 1
        assert body["completionRate"] == 50.0
        assert body["categoryStats"]["math"] == {"completed": 1, "inProgress": 0, "pending": 0}
        assert body["categoryStats"]["uncategorized"]["pending"] == 1


class TestExportEndpoint:
    """Tests for report downloads."""

    def _body(self, fmt: str) -> dict:
        today = utc_now().date()
        return {
            "type": "weekly",
            "format": fmt,
            "startDate": (today - timedelta(days=1)).isoformat(),
            "endDate": (today + timedelta(days=1)).isoformat(),
        }

    def test_html_download(self, client, goal_payload):
        _create_goal(client, goal_payload, title="Exported <goal>")
        body = self._body("html")

        response = client.post("/api/export", json=body)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert response.headers["content-disposition"] == (
            f'attachment; filename="weekly-{body["startDate"]}-{body["endDate"]}.html"'
        )
        assert "Exported &lt;goal&gt;" in response.text

    def test_pdf_download(self, test_settings, db):
        class StubRenderer:
            def render_pdf(self, report: Report) -> bytes:
                return b"%PDF-stub"

        client = TestClient(create_app(test_settings, db=db, pdf_renderer=StubRenderer()))
        client.post(
            "/api/auth/register",
            json={"username": "dave", "email": "dave@example.com", "password": "password4"},
        )

        response = client.post(
            "/api/export",
            json={"type": "monthly", "format": "pdf", "startDate": "2024-01-01", "endDate": "2024-01-31"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content == b"%PDF-stub"

    def test_pdf_failure_is_500(self, test_settings, db):
        class BrokenRenderer:
            def render_pdf(self, report: Report) -> bytes:
                raise RuntimeError("renderer exploded")

        client = TestClient(create_app(test_settings, db=db, pdf_renderer=BrokenRenderer()))
        client.post(
            "/api/auth/register",
            json={"username": "erin", "email": "erin@example.com", "password": "password5"},
        )

        response = client.post(
            "/api/export",
            json={"type": "weekly", "format": "pdf", "startDate": "2024-01-01", "endDate": "2024-01-07"},
        )

        assert response.status_code == 500
        assert "exploded" not in response.text

    def test_invalid_format(self, client):
        response = client.post(
            "/api/export",
            json={"type": "weekly", "format": "docx", "startDate": "2024-01-01", "endDate": "2024-01-07"},
        )
        assert response.status_code == 400


# =============================================================================
# Notes, Diaries, Study Records, Books
# =============================================================================


class TestNoteEndpoints:
    """Tests for notes CRUD and search."""

    def _note(self, client, **overrides):
        body = {"title": "SQL joins", "content": "inner, left, right", "category": "db", "tags": ["sql"]}
        body.update(overrides)
        response = client.post("/api/notes", json=body)
        assert response.status_code == 201, response.text
        return response.json()

    def test_crud(self, client):
        note = self._note(client)
        assert note["tags"] == ["sql"]

        updated = client.put("/api/notes", json={"id": note["id"], "title": "SQL JOINs"})
        assert updated.status_code == 200
        assert updated.json()["title"] == "SQL JOINs"
        assert updated.json()["content"] == "inner, left, right"

        assert client.delete("/api/notes", params={"id": note["id"]}).status_code == 200
        assert client.get("/api/notes").json() == []

    def test_search(self, client):
        self._note(client, title="Joins", category="db", tags=["sql"])
        self._note(client, title="Graphs", content="BFS and DFS", category="algo", tags=["graphs"])

        assert [n["title"] for n in client.get("/api/notes", params={"category": "algo"}).json()] == ["Graphs"]
        assert [n["title"] for n in client.get("/api/notes", params={"tag": "sql"}).json()] == ["Joins"]
        assert [n["title"] for n in client.get("/api/notes", params={"q": "bfs"}).json()] == ["Graphs"]

    def test_title_too_long(self, client):
        response = client.post("/api/notes", json={"title": "x" * 101, "content": "c", "category": "c"})
        assert response.status_code == 400

    def test_foreign_note_is_404(self, client, second_client):
        note = self._note(client)

        assert second_client.put("/api/notes", json={"id": note["id"], "title": "x"}).status_code == 404
        assert second_client.delete("/api/notes", params={"id": note["id"]}).status_code == 404


class TestDiaryEndpoints:
    def test_crud(self, client):
        created = client.post(
            "/api/diaries",
            json={"title": "Day 1", "content": "Studied", "mood": "happy", "weather": "sunny"},
        )
        assert created.status_code == 201
        diary = created.json()
        assert diary["images"] == []

        updated = client.put("/api/diaries", json={"id": diary["id"], "mood": "tired"})
        assert updated.json()["mood"] == "tired"

        assert [d["title"] for d in client.get("/api/diaries", params={"mood": "tired"}).json()] == ["Day 1"]
        assert client.delete("/api/diaries", params={"id": diary["id"]}).status_code == 200
        assert client.delete("/api/diaries", params={"id": diary["id"]}).status_code == 404


class TestStudyRecordEndpoints:
    def test_create_and_list(self, client):
        response = client.post(
            "/api/study-records",
            json={"date": "2024-03-10", "duration": 45, "subject": "math"},
        )
        assert response.status_code == 201
        assert response.json()["date"] == "2024-03-10"

        assert len(client.get("/api/study-records").json()) == 1
        assert client.get("/api/study-records", params={"subject": "art"}).json() == []

    def test_negative_duration(self, client):
        response = client.post(
            "/api/study-records",
            json={"date": "2024-03-10", "duration": -5, "subject": "math"},
        )
        assert response.status_code == 400


class TestBookEndpoints:
    def test_progress_feeds_dashboard(self, client):
        created = client.post(
            "/api/books",
            json={"title": "SICP", "author": "Abelson", "totalPages": 200, "status": "reading"},
        )
        assert created.status_code == 201
        book = created.json()
        assert book["lastReadDate"] is None

        updated = client.put("/api/books", json={"id": book["id"], "currentPage": 50})
        assert updated.json()["currentPage"] == 50
        assert updated.json()["lastReadDate"] is not None

        stats = client.get("/api/statistics").json()
        assert stats["activeBooks"] == 1
        assert stats["readingProgressData"] == {"labels": ["SICP"], "progress": [25.0]}

    def test_create_page_past_end(self, client):
        response = client.post(
            "/api/books",
            json={"title": "SICP", "author": "Abelson", "totalPages": 100, "currentPage": 500},
        )

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert client.get("/api/books").json() == []

    def test_update_page_past_end(self, client):
        book = client.post("/api/books", json={"title": "SICP", "author": "Abelson", "totalPages": 100}).json()

        response = client.put("/api/books", json={"id": book["id"], "currentPage": 101})

        assert response.status_code == 400
        assert response.json()["message"] == "currentPage cannot exceed totalPages"
        assert response.json()["details"][0]["field"] == "currentPage"
        assert client.get("/api/books").json()[0]["currentPage"] == 0

    def test_update_missing(self, client):
        assert client.put("/api/books", json={"id": "missing", "currentPage": 1}).status_code == 404


# =============================================================================
# Health and Middleware
# =============================================================================


class TestHealth:
    def test_health(self, anon_client):
        response = anon_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "database": "ok"}

    def test_request_id_generated(self, anon_client):
        assert anon_client.get("/health").headers["x-request-id"]

    def test_request_id_echoed(self, anon_client):
        response = anon_client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["x-request-id"] == "req-123"
