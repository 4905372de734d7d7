"""Generic owner-scoped repository for SQLModel entities.

Every owned table (goals, notes, diaries, study and book records) carries a
``user_id`` column. ``Repository[T]`` adds that column to every statement it
issues, so a record owned by someone else is indistinguishable from a record
that does not exist.

Mutations are single ``UPDATE``/``DELETE`` statements conditioned on
``(id, user_id)``; the affected row count tells whether the record was there.

Example:
    >>> from studyhub.repository import Repository
    >>> from studyhub.models import GoalRow
    >>>
    >>> goals = Repository[GoalRow](session, GoalRow)
    >>> goal = goals.find_one("goal-id", owner_id="user-id")
    >>> recent = goals.find("user-id", {"type": "short_term"}, limit=10)
    >>> goals.update_one("goal-id", "user-id", {"progress": 40})
"""

from collections.abc import Mapping, Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import delete, func, literal_column, update
from sqlmodel import Session, SQLModel, select

from studyhub.utils import utc_now_iso

# =============================================================================
# Type Variables
# =============================================================================

T = TypeVar("T", bound=SQLModel)


# =============================================================================
# Generic Repository
# =============================================================================


class Repository(Generic[T]):
    """Owner-scoped CRUD operations for one SQLModel table.

    Type Parameter:
        T: SQLModel entity type (GoalRow, NoteRow, ...)

    Args:
        session: SQLModel Session instance
        model: SQLModel class; must define ``id``, ``user_id`` and ``created_at``

    Example:
        >>> repo = Repository[NoteRow](session, NoteRow)
        >>> note = repo.create(NoteRow(user_id="u1", title="t", content="c", category="x"))
        >>> repo.count("u1")
        1
        >>> repo.delete_one(note.id, "u2")
        False
    """

    def __init__(self, session: Session, model: type[T]):
        self.session = session
        self.model = model

    def _scoped(self, stmt: Any, owner_id: str, filters: Mapping[str, Any] | None = None) -> Any:
        stmt = stmt.where(self.model.user_id == owner_id)  # type: ignore[attr-defined]
        for key, value in (filters or {}).items():
            if value is None or not hasattr(self.model, key):
                continue
            stmt = stmt.where(getattr(self.model, key) == value)
        return stmt

    def find(
        self,
        owner_id: str,
        filters: Mapping[str, Any] | None = None,
        limit: int | None = None,
        offset: int = 0,
        newest_first: bool = True,
        criteria: Sequence[Any] = (),
    ) -> Sequence[T]:
        """List the owner's entities matching equality filters.

        Args:
            owner_id: Requesting user
            filters: Column equality filters; unknown keys and None values are skipped
            limit: Maximum number of results (None for all)
            offset: Number of results to skip
            newest_first: Order by creation time descending (ascending if False)
            criteria: Extra SQL expressions, e.g. ``StudyRecordRow.date >= "2024-03-01"``

        Returns:
            Sequence of matching entities
        """
        created = self.model.created_at  # type: ignore[attr-defined]
        rowid = literal_column("rowid")
        if newest_first:
            order = (created.desc(), rowid.desc())
        else:
            order = (created.asc(), rowid.asc())

        stmt = self._scoped(select(self.model), owner_id, filters)
        for clause in criteria:
            stmt = stmt.where(clause)
        stmt = stmt.order_by(*order)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.session.exec(stmt).all()

    def count(self, owner_id: str, filters: Mapping[str, Any] | None = None) -> int:
        """Count the owner's entities matching equality filters."""
        stmt = self._scoped(select(func.count()).select_from(self.model), owner_id, filters)
        return self.session.exec(stmt).one()

    def find_one(self, entity_id: str, owner_id: str) -> T | None:
        """Get one of the owner's entities by ID.

        Returns:
            Entity instance, or None if absent or owned by another user
        """
        stmt = self._scoped(select(self.model), owner_id).where(
            self.model.id == entity_id  # type: ignore[attr-defined]
        )
        return self.session.exec(stmt).first()

    def create(self, entity: T) -> T:
        """Insert a new entity and return it refreshed from the database."""
        self.session.add(entity)
        self.session.commit()
        self.session.refresh(entity)
        return entity

    def update_one(
        self,
        entity_id: str,
        owner_id: str,
        values: Mapping[str, Any],
        guard: Mapping[str, Any] | None = None,
    ) -> T | None:
        """Apply ``values`` to one of the owner's entities in one statement.

        ``updated_at`` is stamped automatically. Keys that are not columns of
        the model are ignored.

        Args:
            entity_id: Primary key value
            owner_id: Requesting user
            values: Column values to set
            guard: Column values the row must still hold for the update to apply

        Returns:
            The updated entity, or None if no row matched (id, owner, guard)
        """
        columns = {k: v for k, v in values.items() if hasattr(self.model, k) and k not in ("id", "user_id")}
        columns["updated_at"] = utc_now_iso()

        stmt = (
            update(self.model)
            .where(self.model.id == entity_id)  # type: ignore[attr-defined]
            .where(self.model.user_id == owner_id)  # type: ignore[attr-defined]
            .values(**columns)
        )
        for key, value in (guard or {}).items():
            stmt = stmt.where(getattr(self.model, key) == value)
        result = self.session.exec(stmt)  # type: ignore[call-overload]
        self.session.commit()
        if result.rowcount == 0:
            return None

        entity = self.session.get(self.model, entity_id)
        if entity is not None:
            self.session.refresh(entity)
        return entity

    def delete_one(self, entity_id: str, owner_id: str) -> bool:
        """Delete one of the owner's entities.

        Returns:
            True if deleted, False if no row matched (id, owner)
        """
        stmt = (
            delete(self.model)
            .where(self.model.id == entity_id)  # type: ignore[attr-defined]
            .where(self.model.user_id == owner_id)  # type: ignore[attr-defined]
        )
        result = self.session.exec(stmt)  # type: ignore[call-overload]
        self.session.commit()
        return result.rowcount > 0

    def exists(self, entity_id: str, owner_id: str) -> bool:
        """Check whether the owner has an entity with this ID."""
        return self.find_one(entity_id, owner_id) is not None


# =============================================================================
# Repository Factory Helper
# =============================================================================


class RepositoryFactory:
    """Factory for creating repositories bound to one session.

    Example:
        >>> factory = RepositoryFactory(session)
        >>> goals = factory.for_entity(GoalRow)
        >>> notes = factory.for_entity(NoteRow)
    """

    def __init__(self, session: Session):
        self.session = session

    def for_entity(self, model: type[T]) -> Repository[T]:
        """Create repository for specific entity type."""
        return Repository[T](self.session, model)


__all__ = ["Repository", "RepositoryFactory"]
