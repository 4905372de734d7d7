"""HTTP API for StudyHub.

:func:`create_app` builds the FastAPI application. Collaborators (settings,
database, identity resolver, PDF renderer) are passed in explicitly and kept
on ``app.state``; nothing is looked up from a global registry at request
time.

Every route except registration, login, logout and ``/health`` depends on
:func:`current_user`, so a request without a valid identity is answered with
401 before any handler code runs.

Example:
    >>> from fastapi.testclient import TestClient
    >>> app = create_app(settings, db=db)
    >>> client = TestClient(app)
    >>> client.post("/api/auth/login", json={"username": "alice", "password": "s3cret!"})
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from studyhub import __version__
from studyhub.auth import TOKEN_COOKIE, JWTIdentityResolver, UserService, issue_token
from studyhub.config import Settings, settings
from studyhub.database import DatabaseManager
from studyhub.errors import StudyHubError, ValidationError
from studyhub.export import ExportService
from studyhub.interfaces import IIdentityResolver, IPdfRenderer
from studyhub.logging import clear_request_context, logger, set_request_context
from studyhub.models import (
    BookRecordCreate,
    BookRecordOut,
    BookRecordUpdate,
    DiaryCreate,
    DiaryOut,
    DiaryUpdate,
    ExportRequest,
    GoalCreate,
    GoalListResponse,
    GoalOut,
    GoalUpdate,
    LoginRequest,
    MessageResponse,
    NoteCreate,
    NoteOut,
    NoteUpdate,
    RegisterRequest,
    StudyRecordCreate,
    StudyRecordOut,
    UserIdentity,
)
from studyhub.services import (
    BookService,
    DiaryService,
    GoalService,
    NoteService,
    StudyRecordService,
)
from studyhub.statistics import DashboardStats, GoalStats, StatisticsService
from studyhub.utils import new_id

REQUEST_ID_HEADER = "X-Request-ID"


# =============================================================================
# Dependencies
# =============================================================================


async def current_user(request: Request) -> UserIdentity:
    """Resolve the caller or fail the request with 401.

    Also binds the user id to the logging context of the request.
    """
    resolver: IIdentityResolver = request.app.state.identity_resolver
    identity = await run_in_threadpool(resolver.resolve_identity, request)
    set_request_context(user_id=identity.user_id)
    return identity


CurrentUser = Annotated[UserIdentity, Depends(current_user)]


def _state(name: str):
    async def dependency(request: Request) -> Any:
        return getattr(request.app.state, name)

    return dependency


Goals = Annotated[GoalService, Depends(_state("goals"))]
Notes = Annotated[NoteService, Depends(_state("notes"))]
Diaries = Annotated[DiaryService, Depends(_state("diaries"))]
StudyRecords = Annotated[StudyRecordService, Depends(_state("study_records"))]
Books = Annotated[BookService, Depends(_state("books"))]
Users = Annotated[UserService, Depends(_state("users"))]
Statistics = Annotated[StatisticsService, Depends(_state("statistics"))]
Exports = Annotated[ExportService, Depends(_state("exports"))]


def _patch(body: BaseModel) -> dict[str, Any]:
    """Fields the caller sent with a value, minus the id."""
    return body.model_dump(mode="json", exclude_unset=True, exclude_none=True, exclude={"id"})


def _set_session_cookie(response: Response, request: Request, user_id: str) -> None:
    config: Settings = request.app.state.settings
    response.set_cookie(
        TOKEN_COOKIE,
        issue_token(user_id, config),
        max_age=config.token_ttl_hours * 3600,
        httponly=True,
        secure=config.is_production,
        samesite="lax",
    )


# =============================================================================
# Routers
# =============================================================================

auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


@auth_router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest, request: Request, response: Response, users: Users):
    user = users.register(body.username, body.email, body.password)
    _set_session_cookie(response, request, user.id)
    return MessageResponse(message="Registration successful")


@auth_router.post("/login", response_model=MessageResponse)
def login(body: LoginRequest, request: Request, response: Response, users: Users):
    user = users.login(body.username, body.password)
    _set_session_cookie(response, request, user.id)
    return MessageResponse(message="Login successful")


@auth_router.post("/logout", response_model=MessageResponse)
def logout(response: Response):
    response.delete_cookie(TOKEN_COOKIE)
    return MessageResponse(message="Logged out")


goals_router = APIRouter(prefix="/api/goals", tags=["goals"])


@goals_router.get("", response_model=GoalListResponse)
def list_goals(
    user: CurrentUser,
    goals: Goals,
    goal_type: Annotated[str | None, Query(alias="type")] = None,
    goal_status: Annotated[str | None, Query(alias="status")] = None,
    page: int = 1,
    limit: int | None = None,
):
    return goals.list(user.user_id, goal_type, goal_status, page, limit)


@goals_router.post("", response_model=GoalOut, status_code=status.HTTP_201_CREATED)
def create_goal(body: GoalCreate, user: CurrentUser, goals: Goals):
    return goals.create(user.user_id, body)


@goals_router.put("", response_model=GoalOut)
def update_goal(body: GoalUpdate, user: CurrentUser, goals: Goals):
    return goals.update(user.user_id, body)


@goals_router.delete("", response_model=MessageResponse)
def delete_goal(user: CurrentUser, goals: Goals, id: str | None = None):  # noqa: A002
    goals.delete(user.user_id, id)
    return MessageResponse(message="Goal deleted")


stats_router = APIRouter(prefix="/api", tags=["statistics"])


@stats_router.get("/statistics", response_model=DashboardStats)
def dashboard_statistics(user: CurrentUser, stats: Statistics):
    return stats.dashboard(user.user_id)


@stats_router.get("/projects/statistics", response_model=GoalStats)
def project_statistics(user: CurrentUser, stats: Statistics):
    return stats.goals(user.user_id)


export_router = APIRouter(prefix="/api/export", tags=["export"])


@export_router.post("")
def export_goals(body: ExportRequest, user: CurrentUser, exports: Exports):
    payload, media_type, filename = exports.export(
        user.user_id, body.type, body.format, body.start_date, body.end_date
    )
    return Response(
        content=payload,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


study_router = APIRouter(prefix="/api/study-records", tags=["study records"])


@study_router.get("", response_model=list[StudyRecordOut])
def list_study_records(user: CurrentUser, records: StudyRecords, subject: str | None = None):
    return records.list(user.user_id, {"subject": subject})


@study_router.post("", response_model=StudyRecordOut, status_code=status.HTTP_201_CREATED)
def create_study_record(body: StudyRecordCreate, user: CurrentUser, records: StudyRecords):
    return records.create(user.user_id, body.model_dump(mode="json"))


books_router = APIRouter(prefix="/api/books", tags=["books"])


@books_router.get("", response_model=list[BookRecordOut])
def list_books(user: CurrentUser, books: Books, book_status: Annotated[str | None, Query(alias="status")] = None):
    return books.list(user.user_id, {"status": book_status})


@books_router.post("", response_model=BookRecordOut, status_code=status.HTTP_201_CREATED)
def create_book(body: BookRecordCreate, user: CurrentUser, books: Books):
    return books.create(user.user_id, body.model_dump(mode="json"))


@books_router.put("", response_model=BookRecordOut)
def update_book(body: BookRecordUpdate, user: CurrentUser, books: Books):
    return books.update(user.user_id, body.id, _patch(body))


notes_router = APIRouter(prefix="/api/notes", tags=["notes"])


@notes_router.get("", response_model=list[NoteOut])
def list_notes(
    user: CurrentUser,
    notes: Notes,
    category: str | None = None,
    tag: str | None = None,
    q: str | None = None,
):
    return notes.search(user.user_id, category=category, tag=tag, query=q)


@notes_router.post("", response_model=NoteOut, status_code=status.HTTP_201_CREATED)
def create_note(body: NoteCreate, user: CurrentUser, notes: Notes):
    return notes.create(user.user_id, body.model_dump(mode="json"))


@notes_router.put("", response_model=NoteOut)
def update_note(body: NoteUpdate, user: CurrentUser, notes: Notes):
    return notes.update(user.user_id, body.id, _patch(body))


@notes_router.delete("", response_model=MessageResponse)
def delete_note(user: CurrentUser, notes: Notes, id: str | None = None):  # noqa: A002
    notes.delete(user.user_id, id)
    return MessageResponse(message="Note deleted")


diaries_router = APIRouter(prefix="/api/diaries", tags=["diaries"])


@diaries_router.get("", response_model=list[DiaryOut])
def list_diaries(user: CurrentUser, diaries: Diaries, mood: str | None = None):
    return diaries.list(user.user_id, {"mood": mood})


@diaries_router.post("", response_model=DiaryOut, status_code=status.HTTP_201_CREATED)
def create_diary(body: DiaryCreate, user: CurrentUser, diaries: Diaries):
    return diaries.create(user.user_id, body.model_dump(mode="json"))


@diaries_router.put("", response_model=DiaryOut)
def update_diary(body: DiaryUpdate, user: CurrentUser, diaries: Diaries):
    return diaries.update(user.user_id, body.id, _patch(body))


@diaries_router.delete("", response_model=MessageResponse)
def delete_diary(user: CurrentUser, diaries: Diaries, id: str | None = None):  # noqa: A002
    diaries.delete(user.user_id, id)
    return MessageResponse(message="Diary deleted")


ROUTERS = (
    auth_router,
    goals_router,
    stats_router,
    export_router,
    study_router,
    books_router,
    notes_router,
    diaries_router,
)


# =============================================================================
# Error Handlers
# =============================================================================


def _error_body(message: str, details: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message}
    if details:
        body["details"] = details
    return body


async def handle_studyhub_error(request: Request, exc: StudyHubError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.opt(exception=exc).error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.debug(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    details = exc.details if isinstance(exc, ValidationError) else None
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, details))


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())[1:]) or None,
            "message": error.get("msg", "invalid value"),
        }
        for error in exc.errors()
    ]
    logger.debug(f"{request.method} {request.url.path} -> 400: {len(details)} invalid fields")
    return JSONResponse(status_code=400, content=_error_body("Invalid request", details))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=_error_body("Internal server error"))


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    config: Settings | None = None,
    db: DatabaseManager | None = None,
    identity_resolver: IIdentityResolver | None = None,
    pdf_renderer: IPdfRenderer | None = None,
) -> FastAPI:
    """Build the StudyHub FastAPI application.

    Args:
        config: Settings (defaults to the global settings)
        db: Database manager; created from ``config.database_path`` and
            initialized when omitted or not yet initialized
        identity_resolver: Caller resolution (defaults to :class:`JWTIdentityResolver`)
        pdf_renderer: PDF backend for exports (defaults to reportlab)

    Returns:
        Configured FastAPI application
    """
    config = config or settings
    db = db or DatabaseManager(config.database_path)
    if db.engine is None:
        db.initialize()

    app = FastAPI(title="StudyHub API", version=__version__)

    app.state.settings = config
    app.state.db = db
    app.state.identity_resolver = identity_resolver or JWTIdentityResolver(db, config)
    app.state.users = UserService(db, config)
    app.state.goals = GoalService(db, config)
    app.state.notes = NoteService(db)
    app.state.diaries = DiaryService(db)
    app.state.study_records = StudyRecordService(db)
    app.state.books = BookService(db)
    app.state.statistics = StatisticsService(db)
    app.state.exports = ExportService(db, pdf_renderer)

    for router in ROUTERS:
        app.include_router(router)

    app.add_exception_handler(StudyHubError, handle_studyhub_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected_error)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_id()
        set_request_context(request_id=request_id, operation=f"{request.method} {request.url.path}")
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.get("/health", tags=["health"])
    def health() -> dict[str, str]:
        try:
            database = "ok" if db.ping() else "unavailable"
        except SQLAlchemyError as e:
            logger.error(f"Health check failed: {e}")
            database = "unavailable"
        return {"status": "ok", "database": database}

    logger.debug(f"StudyHub API created ({config.environment.value}, db={db.database_path})")
    return app


__all__ = ["create_app", "current_user"]
