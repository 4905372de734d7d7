"""Database management for StudyHub.

This module provides SQLite database management with:
- Engine creation with WAL mode and tuned PRAGMA settings
- Table and index creation
- Short-lived sessions, one per request or command

Example:
    >>> from studyhub.database import DatabaseManager
    >>>
    >>> db = DatabaseManager()
    >>> db.initialize()
    >>> with db.session() as session:
    ...     goals = Repository[GoalRow](session, GoalRow).find(user_id)
    >>> db.close()
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import event, func, text
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine, select

from studyhub.config import settings
from studyhub.logging import logger
from studyhub.models import TABLES

INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_goal_user_created ON goals(user_id, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_goal_user_type_status ON goals(user_id, type, status)",
    "CREATE INDEX IF NOT EXISTS idx_study_user_date ON study_records(user_id, date DESC)",
    "CREATE INDEX IF NOT EXISTS idx_book_user_status ON book_records(user_id, status)",
    "CREATE INDEX IF NOT EXISTS idx_note_user_created ON notes(user_id, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_note_category ON notes(category)",
    "CREATE INDEX IF NOT EXISTS idx_diary_user_created ON diaries(user_id, created_at DESC)",
)


def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:  # noqa: ARG001
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.execute("PRAGMA busy_timeout = 5000")
    cursor.close()


# =============================================================================
# Database Manager
# =============================================================================


class DatabaseManager:
    """Manages the SQLite engine and sessions.

    Features:
    - WAL mode for concurrent readers alongside one writer
    - Foreign keys enforced on every connection
    - Index creation for owner-scoped queries
    - ``session()`` context manager

    Args:
        database_path: Path to SQLite database file (defaults to settings.database_path)
    """

    def __init__(self, database_path: Path | None = None):
        self.database_path = Path(database_path or settings.database_path)
        self.engine: Engine | None = None

    def initialize(self) -> None:
        """Initialize database engine and create tables.

        This method:
        1. Creates database file if it doesn't exist
        2. Creates all tables from SQLModel
        3. Enables WAL mode and optimizes PRAGMA settings
        4. Creates indexes for common queries
        """
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(
            f"sqlite:///{self.database_path}",
            echo=False,
            connect_args={"check_same_thread": False},
        )
        event.listen(self.engine, "connect", _set_sqlite_pragmas)

        SQLModel.metadata.create_all(self.engine, tables=[t.__table__ for t in TABLES])  # type: ignore[attr-defined]

        with self.engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode = WAL;")
            conn.exec_driver_sql("PRAGMA synchronous = NORMAL;")
            conn.exec_driver_sql("PRAGMA temp_store = MEMORY;")
            conn.commit()

        self.create_indexes()
        logger.info(f"✅ Database initialized at {self.database_path}")

    def create_indexes(self) -> None:
        """Create database indexes for owner-scoped listing queries."""
        if self.engine is None:
            raise RuntimeError("Database not initialized")

        with self.engine.connect() as conn:
            for ddl in INDEXES:
                conn.execute(text(ddl))
            conn.commit()

        logger.debug("✅ Database indexes created")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Open a session, rolling back on error and closing on exit.

        Raises:
            RuntimeError: If the database is not initialized
        """
        if self.engine is None:
            raise RuntimeError("Database not initialized")

        with Session(self.engine) as session:
            try:
                yield session
            except Exception:
                session.rollback()
                raise

    def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        if self.engine is None:
            return False
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def table_counts(self) -> dict[str, int]:
        """Row count per table, in insert order."""
        counts: dict[str, int] = {}
        with self.session() as session:
            for table in TABLES:
                stmt = select(func.count()).select_from(table)
                counts[table.__tablename__] = session.exec(stmt).one()  # type: ignore[attr-defined]
        return counts

    def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None


__all__ = ["DatabaseManager"]
