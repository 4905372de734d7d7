"""Dashboard statistics.

:func:`aggregate` turns a user's study records, book records and goals into
the numbers shown on the dashboard. It is pure; :class:`StatisticsService`
does the loading.
"""

from collections.abc import Iterable
from datetime import date, timedelta

from pydantic import Field

from studyhub.database import DatabaseManager
from studyhub.logging import logger
from studyhub.models import (
    ApiModel,
    BookRecordRow,
    BookStatus,
    GoalRow,
    GoalStatus,
    StudyRecordRow,
)
from studyhub.repository import Repository
from studyhub.utils import local_today, percentage, trailing_days

STUDY_WINDOW_DAYS = 7
UNCATEGORIZED = "uncategorized"

_STATUS_KEYS = {
    GoalStatus.COMPLETED.value: "completed",
    GoalStatus.IN_PROGRESS.value: "in_progress",
    GoalStatus.NOT_STARTED.value: "pending",
}


class StudyTimeData(ApiModel):
    labels: list[str] = Field(default_factory=list)
    durations: list[int] = Field(default_factory=list)


class ReadingProgressData(ApiModel):
    labels: list[str] = Field(default_factory=list)
    progress: list[float] = Field(default_factory=list)


class CategoryCounts(ApiModel):
    completed: int = 0
    in_progress: int = 0
    pending: int = 0


class ProjectProgressData(ApiModel):
    labels: list[str] = Field(default_factory=list)
    completed: list[int] = Field(default_factory=list)
    in_progress: list[int] = Field(default_factory=list)


class GoalStats(ApiModel):
    """Goal completion figures (``GET /api/projects/statistics``)."""

    total_goals: int = 0
    completed_goals: int = 0
    completion_rate: float = 0.0
    category_stats: dict[str, CategoryCounts] = Field(default_factory=dict)
    project_progress_data: ProjectProgressData = Field(default_factory=ProjectProgressData)

    def for_category(self, category: str | None) -> CategoryCounts:
        """Counts for one category; all zero when it has no goals."""
        return self.category_stats.get(category or UNCATEGORIZED, CategoryCounts())


class DashboardStats(GoalStats):
    """Everything shown on the dashboard (``GET /api/statistics``)."""

    study_time_data: StudyTimeData = Field(default_factory=StudyTimeData)
    reading_progress_data: ReadingProgressData = Field(default_factory=ReadingProgressData)
    total_study_time: int = 0
    active_books: int = 0


def study_time_series(records: Iterable[StudyRecordRow], today: date) -> StudyTimeData:
    """Minutes studied per day over the trailing window ending ``today``.

    Records on the same day add up; records outside the window are ignored.
    """
    labels = [day.isoformat() for day in trailing_days(today, STUDY_WINDOW_DAYS)]
    buckets = dict.fromkeys(labels, 0)
    for record in records:
        day = str(record.date)[:10]
        if day in buckets:
            buckets[day] += record.duration
    return StudyTimeData(labels=labels, durations=[buckets[label] for label in labels])


def reading_progress(books: Iterable[BookRecordRow]) -> ReadingProgressData:
    """Percent read for every book currently being read."""
    data = ReadingProgressData()
    for book in books:
        if book.status != BookStatus.READING:
            continue
        data.labels.append(book.title)
        data.progress.append(percentage(book.current_page, book.total_pages))
    return data


def goal_stats(goals: Iterable[GoalRow]) -> GoalStats:
    """Completion rate and per-category status counts, in first-seen order."""
    stats = GoalStats()
    categories: dict[str, CategoryCounts] = {}

    for goal in goals:
        stats.total_goals += 1
        if goal.status == GoalStatus.COMPLETED:
            stats.completed_goals += 1

        counts = categories.setdefault(goal.category or UNCATEGORIZED, CategoryCounts())
        key = _STATUS_KEYS.get(goal.status)
        if key:
            setattr(counts, key, getattr(counts, key) + 1)

    stats.completion_rate = percentage(stats.completed_goals, stats.total_goals)
    stats.category_stats = categories
    stats.project_progress_data = ProjectProgressData(
        labels=list(categories),
        completed=[c.completed for c in categories.values()],
        in_progress=[c.in_progress for c in categories.values()],
    )
    return stats


def aggregate(
    study_records: Iterable[StudyRecordRow],
    book_records: Iterable[BookRecordRow],
    goals: Iterable[GoalRow],
    today: date | None = None,
) -> DashboardStats:
    """Build the dashboard statistics.

    Args:
        study_records: The user's study records (any date range)
        book_records: The user's books (only ``reading`` ones are counted)
        goals: The user's goals
        today: Last day of the study window (defaults to server-local today)

    Returns:
        DashboardStats with study time, reading progress and goal figures
    """
    today = today or local_today()
    series = study_time_series(study_records, today)
    reading = reading_progress(book_records)
    goal_figures = goal_stats(goals)

    return DashboardStats(
        **goal_figures.model_dump(),
        study_time_data=series,
        reading_progress_data=reading,
        total_study_time=sum(series.durations),
        active_books=len(reading.labels),
    )


class StatisticsService:
    """Loads a user's records and aggregates them.

    Args:
        db: Initialized database manager
    """

    def __init__(self, db: DatabaseManager):
        self.db = db

    def dashboard(self, user_id: str, today: date | None = None) -> DashboardStats:
        """Dashboard statistics for one user."""
        today = today or local_today()
        window_start = (today - timedelta(days=STUDY_WINDOW_DAYS - 1)).isoformat()

        with self.db.session() as session:
            records = Repository[StudyRecordRow](session, StudyRecordRow).find(
                user_id, newest_first=False, criteria=[StudyRecordRow.date >= window_start]
            )
            books = Repository[BookRecordRow](session, BookRecordRow).find(
                user_id, {"status": BookStatus.READING.value}, newest_first=False
            )
            goals = Repository[GoalRow](session, GoalRow).find(user_id)
            stats = aggregate(records, books, goals, today)

        logger.debug(
            f"Dashboard for {user_id}: {stats.total_goals} goals, "
            f"{stats.total_study_time} minutes this week"
        )
        return stats

    def goals(self, user_id: str) -> GoalStats:
        """Goal completion figures for one user."""
        with self.db.session() as session:
            goals = Repository[GoalRow](session, GoalRow).find(user_id)
            return goal_stats(goals)


__all__ = [
    "DashboardStats",
    "GoalStats",
    "CategoryCounts",
    "aggregate",
    "goal_stats",
    "reading_progress",
    "study_time_series",
    "StatisticsService",
]
