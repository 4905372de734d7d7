"""Owner-scoped record services behind the HTTP API.

Each service opens one session per call, talks to the database only through
:class:`~studyhub.repository.Repository`, and returns API models built while
the session is still open. Every mutation is a single owner-conditioned
statement.
"""

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlmodel import SQLModel

from studyhub.config import Settings, settings
from studyhub.database import DatabaseManager
from studyhub.errors import NotFoundError, ValidationError
from studyhub.lifecycle import apply_update, new_goal_values
from studyhub.logging import logger
from studyhub.models import (
    BookRecordOut,
    BookRecordRow,
    DiaryOut,
    DiaryRow,
    GoalCreate,
    GoalListResponse,
    GoalOut,
    GoalRow,
    GoalUpdate,
    NoteOut,
    NoteRow,
    Pagination,
    StudyRecordOut,
    StudyRecordRow,
)
from studyhub.repository import Repository
from studyhub.utils import local_today, total_pages

RowT = TypeVar("RowT", bound=SQLModel)
OutT = TypeVar("OutT", bound=BaseModel)


def require_id(entity_id: str | None, entity: str = "Record") -> str:
    """Reject a missing or blank record id with a 400."""
    if not entity_id or not entity_id.strip():
        raise ValidationError(f"{entity} id is required", details=[{"field": "id"}])
    return entity_id.strip()


# =============================================================================
# Generic Record Service
# =============================================================================


class RecordService(Generic[RowT, OutT]):
    """List, create, update and delete one user's records of one kind.

    Args:
        db: Initialized database manager
        model: SQLModel table class
        out_model: API model returned to the caller
        entity: Human-readable name used in messages ("Note", "Diary", ...)
    """

    def __init__(self, db: DatabaseManager, model: type[RowT], out_model: type[OutT], entity: str):
        self.db = db
        self.model = model
        self.out_model = out_model
        self.entity = entity

    def _out(self, row: RowT) -> OutT:
        return self.out_model.model_validate(row)

    def list(self, user_id: str, filters: dict[str, Any] | None = None) -> list[OutT]:
        """All of the user's records matching equality filters, newest first."""
        with self.db.session() as session:
            rows = Repository[RowT](session, self.model).find(user_id, filters)
            logger.debug(f"Listed {len(rows)} {self.entity.lower()} records for {user_id}")
            return [self._out(row) for row in rows]

    def get(self, user_id: str, entity_id: str) -> OutT:
        """One of the user's records.

        Raises:
            NotFoundError: If absent or owned by someone else
        """
        with self.db.session() as session:
            row = Repository[RowT](session, self.model).find_one(entity_id, user_id)
            if row is None:
                raise NotFoundError(self.entity)
            return self._out(row)

    def create(self, user_id: str, values: dict[str, Any]) -> OutT:
        """Insert a record owned by ``user_id``."""
        values = {k: v for k, v in values.items() if k not in ("id", "user_id", "created_at", "updated_at")}
        with self.db.session() as session:
            row = Repository[RowT](session, self.model).create(self.model(**values, user_id=user_id))
            logger.info(f"Created {self.entity.lower()} {row.id} for {user_id}")  # type: ignore[attr-defined]
            return self._out(row)

    def update(self, user_id: str, entity_id: str, values: dict[str, Any]) -> OutT:
        """Apply a partial update in one owner-conditioned statement.

        Raises:
            ValidationError: If ``entity_id`` is missing
            NotFoundError: If no record matched (id, owner)
        """
        entity_id = require_id(entity_id, self.entity)
        with self.db.session() as session:
            row = Repository[RowT](session, self.model).update_one(entity_id, user_id, values)
            if row is None:
                raise NotFoundError(self.entity)
            logger.info(f"Updated {self.entity.lower()} {entity_id} ({', '.join(values) or 'no fields'})")
            return self._out(row)

    def delete(self, user_id: str, entity_id: str | None) -> None:
        """Delete one of the user's records.

        Raises:
            ValidationError: If ``entity_id`` is missing
            NotFoundError: If no record matched (id, owner)
        """
        entity_id = require_id(entity_id, self.entity)
        with self.db.session() as session:
            if not Repository[RowT](session, self.model).delete_one(entity_id, user_id):
                raise NotFoundError(self.entity)
        logger.info(f"Deleted {self.entity.lower()} {entity_id}")


# =============================================================================
# Goals
# =============================================================================


class GoalService:
    """Goal listing and lifecycle-aware mutations.

    Args:
        db: Initialized database manager
        config: Settings providing page size limits (defaults to global)
    """

    def __init__(self, db: DatabaseManager, config: Settings | None = None):
        self.db = db
        self.config = config or settings

    def list(
        self,
        user_id: str,
        goal_type: str | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> GoalListResponse:
        """One page of the user's goals, newest first.

        Args:
            user_id: Owner
            goal_type: Optional ``type`` equality filter
            status: Optional ``status`` equality filter
            page: 1-based page number
            limit: Page size (defaults to settings.default_page_size)

        Raises:
            ValidationError: If page or limit is below 1, or limit above max_page_size
        """
        limit = self.config.default_page_size if limit is None else limit
        if page < 1:
            raise ValidationError("page must be at least 1", details=[{"field": "page", "value": page}])
        if not 1 <= limit <= self.config.max_page_size:
            raise ValidationError(
                f"limit must be between 1 and {self.config.max_page_size}",
                details=[{"field": "limit", "value": limit}],
            )

        filters = {"type": goal_type or None, "status": status or None}
        with self.db.session() as session:
            repo = Repository[GoalRow](session, GoalRow)
            total = repo.count(user_id, filters)
            rows = repo.find(user_id, filters, limit=limit, offset=(page - 1) * limit)
            goals = [GoalOut.model_validate(row) for row in rows]

        logger.debug(f"Goals page {page} for {user_id}: {len(goals)} of {total}")
        return GoalListResponse(
            goals=goals,
            pagination=Pagination(total=total, page=page, total_pages=total_pages(total, limit)),
        )

    def create(self, user_id: str, payload: GoalCreate) -> GoalOut:
        """Create a goal; status, progress and points always start at their defaults."""
        values = new_goal_values(payload.model_dump(mode="json"))
        with self.db.session() as session:
            row = Repository[GoalRow](session, GoalRow).create(GoalRow(**values, user_id=user_id))
            logger.info(f"🎯 Created goal {row.id} ({row.type}) for {user_id}")
            return GoalOut.model_validate(row)

    def update(self, user_id: str, payload: GoalUpdate) -> GoalOut:
        """Apply a partial update, awarding points on completion.

        Raises:
            ValidationError: If the patch holds an illegal value
            NotFoundError: If the goal is absent, foreign, or deleted concurrently
        """
        goal_id = require_id(payload.id, "Goal")
        with self.db.session() as session:
            repo = Repository[GoalRow](session, GoalRow)
            existing = repo.find_one(goal_id, user_id)
            if existing is None:
                raise NotFoundError("Goal")

            values = apply_update(existing.model_dump(), payload.patch())
            row = repo.update_one(goal_id, user_id, values)
            if row is None:
                raise NotFoundError("Goal")

            if "points" in values and values["points"]:
                logger.info(f"🏆 Goal {goal_id} completed: {values['points']} points")
            else:
                logger.info(f"Updated goal {goal_id} ({', '.join(values) or 'no fields'})")
            return GoalOut.model_validate(row)

    def delete(self, user_id: str, goal_id: str | None) -> None:
        """Delete one of the user's goals.

        Raises:
            ValidationError: If ``goal_id`` is missing
            NotFoundError: If absent or owned by someone else
        """
        goal_id = require_id(goal_id, "Goal")
        with self.db.session() as session:
            if not Repository[GoalRow](session, GoalRow).delete_one(goal_id, user_id):
                raise NotFoundError("Goal")
        logger.info(f"🗑️ Deleted goal {goal_id}")


# =============================================================================
# Notes, Diaries, Study Records, Books
# =============================================================================


class NoteService(RecordService[NoteRow, NoteOut]):
    """Study notes, searchable by category, tag and text."""

    def __init__(self, db: DatabaseManager):
        super().__init__(db, NoteRow, NoteOut, "Note")

    def search(
        self,
        user_id: str,
        category: str | None = None,
        tag: str | None = None,
        query: str | None = None,
    ) -> list[NoteOut]:
        """Notes matching every given criterion, newest first.

        Args:
            user_id: Owner
            category: Exact category
            tag: Tag the note must carry
            query: Case-insensitive substring of the title or content
        """
        notes: Sequence[NoteOut] = self.list(user_id, {"category": category or None})
        needle = (query or "").strip().lower()
        return [
            note
            for note in notes
            if (not tag or tag in note.tags)
            and (not needle or needle in note.title.lower() or needle in note.content.lower())
        ]


class DiaryService(RecordService[DiaryRow, DiaryOut]):
    """Diary entries."""

    def __init__(self, db: DatabaseManager):
        super().__init__(db, DiaryRow, DiaryOut, "Diary")


class StudyRecordService(RecordService[StudyRecordRow, StudyRecordOut]):
    """Minutes studied per subject per day."""

    def __init__(self, db: DatabaseManager):
        super().__init__(db, StudyRecordRow, StudyRecordOut, "Study record")


class BookService(RecordService[BookRecordRow, BookRecordOut]):
    """Reading progress per book."""

    def __init__(self, db: DatabaseManager):
        super().__init__(db, BookRecordRow, BookRecordOut, "Book")

    @staticmethod
    def _check_pages(current_page: int, total_pages: int) -> None:
        if current_page > total_pages:
            raise ValidationError(
                "currentPage cannot exceed totalPages",
                details=[{"field": "currentPage", "value": current_page}],
            )

    def create(self, user_id: str, values: dict[str, Any]) -> BookRecordOut:
        self._check_pages(values.get("current_page", 0), values.get("total_pages", 0))
        if values.get("current_page"):
            values = {**values, "last_read_date": local_today().isoformat()}
        return super().create(user_id, values)

    def update(self, user_id: str, entity_id: str, values: dict[str, Any]) -> BookRecordOut:
        """Update a book; moving ``current_page`` stamps ``last_read_date``.

        The page bound is checked against the stored book, and the UPDATE
        only matches while the stored page count is still the one checked.

        Raises:
            ValidationError: If ``entity_id`` is missing or the page would
                pass the end of the book
            NotFoundError: If no book matched (id, owner)
        """
        entity_id = require_id(entity_id, self.entity)
        if "current_page" not in values and "total_pages" not in values:
            return super().update(user_id, entity_id, values)

        values = {**values}
        if "current_page" in values:
            values["last_read_date"] = local_today().isoformat()

        with self.db.session() as session:
            repo = Repository[BookRecordRow](session, BookRecordRow)
            existing = repo.find_one(entity_id, user_id)
            if existing is None:
                raise NotFoundError(self.entity)
            current = values.get("current_page", existing.current_page)
            total = values.get("total_pages", existing.total_pages)
            self._check_pages(current, total)

            row = repo.update_one(
                entity_id,
                user_id,
                values,
                guard={"current_page": existing.current_page, "total_pages": existing.total_pages},
            )
            if row is None:
                raise NotFoundError(self.entity)
            logger.info(f"📖 Book {entity_id} at page {row.current_page} of {row.total_pages}")
            return self._out(row)


__all__ = [
    "RecordService",
    "GoalService",
    "NoteService",
    "DiaryService",
    "StudyRecordService",
    "BookService",
    "require_id",
]
