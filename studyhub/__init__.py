"""StudyHub - personal study management backend.

This package provides a FastAPI service over SQLite for tracking learning
goals, notes, diaries, study time and reading progress, with dashboard
statistics, weekly/monthly goal reports (HTML or PDF) and JSON backups.

Example:
    >>> from studyhub import DatabaseManager, GoalService
    >>> db = DatabaseManager()
    >>> db.initialize()
    >>> goals = GoalService(db)
    >>> goals.list(user_id, goal_type="short_term").pagination.total
    0
    >>> db.close()
"""

__version__ = "0.1.0"

from studyhub.config import settings  # noqa: E402
from studyhub.database import DatabaseManager  # noqa: E402
from studyhub.errors import (  # noqa: E402
    ExportError,
    NotFoundError,
    StudyHubError,
    UnauthorizedError,
    ValidationError,
)
from studyhub.models import (  # noqa: E402
    BookRecordRow,
    DiaryRow,
    GoalRow,
    NoteRow,
    StudyRecordRow,
    UserRow,
)
from studyhub.services import GoalService  # noqa: E402
from studyhub.statistics import StatisticsService, aggregate  # noqa: E402

__all__ = [
    # Main components
    "DatabaseManager",
    "GoalService",
    "StatisticsService",
    "aggregate",
    # Configuration
    "settings",
    # Errors
    "StudyHubError",
    "UnauthorizedError",
    "NotFoundError",
    "ValidationError",
    "ExportError",
    # SQLModel tables
    "UserRow",
    "GoalRow",
    "StudyRecordRow",
    "BookRecordRow",
    "NoteRow",
    "DiaryRow",
]
