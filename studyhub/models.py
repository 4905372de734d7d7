"""Data models for StudyHub.

This module defines both Pydantic models (request and response bodies of the
HTTP API) and SQLModel ORM models (database persistence).

Models are organized into three sections:
1. Enumerations shared by both layers
2. SQLModel tables for database persistence
3. Pydantic models for the HTTP API

Tables store timestamps as ISO8601 UTC strings and calendar dates as
``YYYY-MM-DD`` strings, so rows survive a JSON snapshot unchanged.
"""

from datetime import date, datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic import Field as PydanticField
from pydantic.alias_generators import to_camel
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from studyhub.utils import new_id, utc_now_iso

# =============================================================================
# Section 1: Enumerations
# =============================================================================


class GoalType(StrEnum):
    """Goal horizon."""

    SHORT_TERM = "short_term"
    LONG_TERM = "long_term"


class GoalPriority(StrEnum):
    """Goal priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class GoalStatus(StrEnum):
    """Goal lifecycle status."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ReminderFrequency(StrEnum):
    """How often a goal reminder is due."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class BookStatus(StrEnum):
    """Reading status of a book."""

    READING = "reading"
    COMPLETED = "completed"
    PLANNED = "planned"


class UserRole(StrEnum):
    """Account role."""

    USER = "user"
    ADMIN = "admin"


class ReportType(StrEnum):
    """Export report period."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ExportFormat(StrEnum):
    """Export output format."""

    HTML = "html"
    PDF = "pdf"


# =============================================================================
# Section 2: SQLModel Tables
# =============================================================================


class UserRow(SQLModel, table=True):
    """Persisted user account.

    Attributes:
        id: User ID (primary key)
        username: Unique login name
        email: Unique lowercased email
        password_hash: bcrypt hash, never sent to clients
        role: Account role
        profile_name: Display name
        profile_avatar: Avatar URL
        profile_bio: Short bio
        created_at: ISO8601 UTC creation timestamp
        updated_at: ISO8601 UTC last update timestamp
    """

    __tablename__ = "users"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    username: str = Field(index=True, unique=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str = UserRole.USER.value
    profile_name: str = ""
    profile_avatar: Optional[str] = None
    profile_bio: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)


class GoalRow(SQLModel, table=True):
    """Persisted learning goal.

    Attributes:
        id: Goal ID (primary key)
        user_id: FK to UserRow.id (indexed)
        title: Goal title
        description: Goal description
        type: short_term or long_term
        start_date: Planned start (YYYY-MM-DD)
        end_date: Planned end (YYYY-MM-DD)
        priority: low, medium or high
        status: not_started, in_progress or completed
        progress: Completion percentage (0-100)
        milestones: Ordered list of {title, completed, completed_at}
        reminder_frequency: daily, weekly, monthly or None
        last_reminder_sent: ISO8601 UTC timestamp of the last reminder
        category: Free-text grouping used by category statistics
        points: Reward points, awarded on completion
        created_at: ISO8601 UTC creation timestamp (indexed)
        updated_at: ISO8601 UTC last update timestamp
    """

    __tablename__ = "goals"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    title: str
    description: str
    type: str
    start_date: str
    end_date: str
    priority: str
    status: str = GoalStatus.NOT_STARTED.value
    progress: int = 0
    milestones: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    reminder_frequency: Optional[str] = None
    last_reminder_sent: Optional[str] = None
    category: Optional[str] = None
    points: int = 0
    created_at: str = Field(default_factory=utc_now_iso, index=True)
    updated_at: str = Field(default_factory=utc_now_iso)


class StudyRecordRow(SQLModel, table=True):
    """Minutes studied on one subject on one day."""

    __tablename__ = "study_records"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    date: str = Field(index=True)
    duration: int = 0
    subject: str
    notes: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)


class BookRecordRow(SQLModel, table=True):
    """Reading progress on one book."""

    __tablename__ = "book_records"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    title: str
    author: str
    total_pages: int = 0
    current_page: int = 0
    status: str = BookStatus.PLANNED.value
    start_date: Optional[str] = None
    last_read_date: Optional[str] = None
    notes: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)


class NoteRow(SQLModel, table=True):
    """Study note."""

    __tablename__ = "notes"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    title: str
    content: str
    category: str
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: str = Field(default_factory=utc_now_iso, index=True)
    updated_at: str = Field(default_factory=utc_now_iso)


class DiaryRow(SQLModel, table=True):
    """Diary entry."""

    __tablename__ = "diaries"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    title: str
    content: str
    mood: Optional[str] = None
    weather: Optional[str] = None
    images: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: str = Field(default_factory=utc_now_iso, index=True)
    updated_at: str = Field(default_factory=utc_now_iso)


# =============================================================================
# Section 3: Pydantic Models for the HTTP API
# =============================================================================

# bcrypt only hashes the first 72 bytes and rejects longer input
MAX_PASSWORD_BYTES = 72


class ApiModel(BaseModel):
    """Base for API bodies: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )


class Milestone(ApiModel):
    """Goal milestone."""

    title: str = PydanticField(min_length=1)
    completed: bool = False
    completed_at: Optional[datetime] = None


class GoalCreate(ApiModel):
    """Body of ``POST /api/goals``.

    Caller-supplied ``status``, ``progress`` and ``points`` are dropped by
    ``extra="ignore"``; new goals always start from the lifecycle defaults.
    """

    title: str = PydanticField(min_length=1)
    description: str = PydanticField(min_length=1)
    type: GoalType
    start_date: date
    end_date: date
    priority: GoalPriority
    milestones: list[Milestone] = PydanticField(default_factory=list)
    reminder_frequency: Optional[ReminderFrequency] = None
    category: Optional[str] = None


class GoalUpdate(ApiModel):
    """Body of ``PUT /api/goals``: an id plus any subset of mutable fields.

    Values are range-checked by :func:`studyhub.lifecycle.apply_update`.
    """

    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    progress: Optional[int] = None
    milestones: Optional[list[Milestone]] = None
    reminder_frequency: Optional[str] = None
    category: Optional[str] = None

    def patch(self) -> dict[str, Any]:
        """Fields the caller actually sent, minus the id."""
        return self.model_dump(mode="json", exclude_unset=True, exclude={"id"})


class GoalOut(ApiModel):
    """Goal as returned to its owner."""

    id: str
    user_id: str
    title: str
    description: str
    type: GoalType
    start_date: date
    end_date: date
    priority: GoalPriority
    status: GoalStatus
    progress: int
    milestones: list[Milestone]
    reminder_frequency: Optional[ReminderFrequency] = None
    last_reminder_sent: Optional[str] = None
    category: Optional[str] = None
    points: int
    created_at: str
    updated_at: str


class Pagination(ApiModel):
    """Listing pagination metadata."""

    total: int
    page: int
    total_pages: int


class GoalListResponse(ApiModel):
    """Body of ``GET /api/goals``."""

    goals: list[GoalOut]
    pagination: Pagination


class StudyRecordCreate(ApiModel):
    """Body of ``POST /api/study-records``."""

    date: date
    duration: int = PydanticField(ge=0)
    subject: str = PydanticField(min_length=1)
    notes: Optional[str] = None


class StudyRecordOut(ApiModel):
    """Study record as returned to its owner."""

    id: str
    user_id: str
    date: date
    duration: int
    subject: str
    notes: Optional[str] = None
    created_at: str


class BookRecordCreate(ApiModel):
    """Body of ``POST /api/books``."""

    title: str = PydanticField(min_length=1)
    author: str = PydanticField(min_length=1)
    total_pages: int = PydanticField(ge=0)
    current_page: int = PydanticField(default=0, ge=0)
    status: BookStatus = BookStatus.PLANNED
    start_date: Optional[date] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _page_within_book(self) -> "BookRecordCreate":
        if self.current_page > self.total_pages:
            raise ValueError("currentPage cannot exceed totalPages")
        return self


class BookRecordUpdate(ApiModel):
    """Body of ``PUT /api/books``.

    When only one of ``currentPage``/``totalPages`` is sent, the bound is
    checked against the stored book by :class:`~studyhub.services.BookService`.
    """

    id: str
    title: Optional[str] = None
    author: Optional[str] = None
    total_pages: Optional[int] = PydanticField(default=None, ge=0)
    current_page: Optional[int] = PydanticField(default=None, ge=0)
    status: Optional[BookStatus] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _page_within_book(self) -> "BookRecordUpdate":
        if (
            self.current_page is not None
            and self.total_pages is not None
            and self.current_page > self.total_pages
        ):
            raise ValueError("currentPage cannot exceed totalPages")
        return self


class BookRecordOut(ApiModel):
    """Book record as returned to its owner."""

    id: str
    user_id: str
    title: str
    author: str
    total_pages: int
    current_page: int
    status: BookStatus
    start_date: Optional[date] = None
    last_read_date: Optional[str] = None
    notes: Optional[str] = None
    created_at: str
    updated_at: str


class NoteCreate(ApiModel):
    """Body of ``POST /api/notes``."""

    title: str = PydanticField(min_length=1, max_length=100)
    content: str = PydanticField(min_length=1)
    category: str = PydanticField(min_length=1)
    tags: list[str] = PydanticField(default_factory=list)

    @field_validator("title", "content", "category")
    @classmethod
    def _strip(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("tags")
    @classmethod
    def _strip_tags(cls, v: list[str]) -> list[str]:
        return [tag.strip() for tag in v if tag.strip()]


class NoteUpdate(ApiModel):
    """Body of ``PUT /api/notes``."""

    id: str
    title: Optional[str] = PydanticField(default=None, min_length=1, max_length=100)
    content: Optional[str] = PydanticField(default=None, min_length=1)
    category: Optional[str] = PydanticField(default=None, min_length=1)
    tags: Optional[list[str]] = None


class NoteOut(ApiModel):
    """Note as returned to its owner."""

    id: str
    user_id: str
    title: str
    content: str
    category: str
    tags: list[str]
    created_at: str
    updated_at: str


class DiaryCreate(ApiModel):
    """Body of ``POST /api/diaries``."""

    title: str = PydanticField(min_length=1)
    content: str = PydanticField(min_length=1)
    mood: Optional[str] = None
    weather: Optional[str] = None
    images: list[str] = PydanticField(default_factory=list)


class DiaryUpdate(ApiModel):
    """Body of ``PUT /api/diaries``."""

    id: str
    title: Optional[str] = PydanticField(default=None, min_length=1)
    content: Optional[str] = PydanticField(default=None, min_length=1)
    mood: Optional[str] = None
    weather: Optional[str] = None
    images: Optional[list[str]] = None


class DiaryOut(ApiModel):
    """Diary entry as returned to its owner."""

    id: str
    user_id: str
    title: str
    content: str
    mood: Optional[str] = None
    weather: Optional[str] = None
    images: list[str]
    created_at: str
    updated_at: str


class RegisterRequest(ApiModel):
    """Body of ``POST /api/auth/register``."""

    username: str = PydanticField(min_length=3, max_length=20)
    email: str = PydanticField(pattern=r"^\S+@\S+\.\S+$")
    password: str = PydanticField(min_length=6)

    @field_validator("username", mode="before")
    @classmethod
    def _strip_username(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def _fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class LoginRequest(ApiModel):
    """Body of ``POST /api/auth/login``."""

    username: str = PydanticField(min_length=1)
    password: str = PydanticField(min_length=1)


class ExportRequest(ApiModel):
    """Body of ``POST /api/export``."""

    type: ReportType
    format: ExportFormat
    start_date: date
    end_date: date


class UserOut(ApiModel):
    """Public view of an account."""

    id: str
    username: str
    email: str
    role: UserRole
    profile_name: str
    profile_avatar: Optional[str] = None
    profile_bio: Optional[str] = None


class MessageResponse(ApiModel):
    """Generic ``{success, message}`` body."""

    success: bool = True
    message: str


TABLES: tuple[type[SQLModel], ...] = (
    UserRow,
    GoalRow,
    StudyRecordRow,
    BookRecordRow,
    NoteRow,
    DiaryRow,
)
"""All tables, parents before children (insert order for restores)."""


# =============================================================================
# Section 4: Value Objects
# =============================================================================


class UserIdentity(BaseModel):
    """The authenticated caller of a request."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    username: str
    role: UserRole = UserRole.USER


class ReportSection(BaseModel):
    """One heading of an export report and its lines."""

    heading: str
    css_class: str
    lines: list[str] = PydanticField(default_factory=list)


class Report(BaseModel):
    """Format-independent export report: a title and ordered sections."""

    title: str
    sections: list[ReportSection] = PydanticField(default_factory=list)
