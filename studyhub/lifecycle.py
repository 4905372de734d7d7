"""Goal lifecycle policy.

Pure functions computing the values persisted when a goal is created or
updated. Nothing here touches the database.

Goals move ``not_started -> in_progress -> completed`` (any order is
accepted). Reward points are granted on the transition into ``completed``:
100 for a long-term goal, 50 for a short-term one. Saving an already
completed goal again leaves its points alone.

Example:
    >>> existing = {"status": "in_progress", "type": "long_term", "points": 0}
    >>> apply_update(existing, {"status": "completed"})["points"]
    100
    >>> apply_update({"status": "completed", "type": "long_term", "points": 100},
    ...              {"status": "completed"}).get("points")
"""

from collections.abc import Mapping
from typing import Any

from studyhub.errors import ValidationError
from studyhub.models import (
    GoalPriority,
    GoalStatus,
    GoalType,
    ReminderFrequency,
)
from studyhub.utils import utc_now_iso

LONG_TERM_POINTS = 100
SHORT_TERM_POINTS = 50

MUTABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "type",
        "start_date",
        "end_date",
        "priority",
        "status",
        "progress",
        "milestones",
        "reminder_frequency",
        "category",
    }
)

REQUIRED_FIELDS = frozenset(
    {"title", "description", "type", "start_date", "end_date", "priority", "status", "progress"}
)

_ENUM_FIELDS: dict[str, type] = {
    "type": GoalType,
    "priority": GoalPriority,
    "status": GoalStatus,
    "reminder_frequency": ReminderFrequency,
}


def completion_points(goal_type: str) -> int:
    """Points awarded for completing a goal of this type."""
    return LONG_TERM_POINTS if goal_type == GoalType.LONG_TERM else SHORT_TERM_POINTS


def _check_enum(field: str, value: Any) -> str:
    enum = _ENUM_FIELDS[field]
    try:
        return enum(value).value
    except ValueError:
        allowed = ", ".join(member.value for member in enum)
        raise ValidationError(
            f"{field} must be one of: {allowed}",
            details=[{"field": field, "value": value}],
        ) from None


def _check_progress(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValidationError("progress must be a number", details=[{"field": "progress", "value": value}])
    if not 0 <= value <= 100:
        raise ValidationError(
            "progress must be between 0 and 100",
            details=[{"field": "progress", "value": value}],
        )
    return int(value)


def _stamp_milestones(milestones: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
    stamped = []
    for milestone in milestones:
        item = dict(milestone)
        if item.get("completed") and not item.get("completed_at"):
            item["completed_at"] = utc_now_iso()
        elif not item.get("completed"):
            item["completed_at"] = None
        stamped.append(item)
    return stamped


def new_goal_values(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Values for a freshly created goal.

    Whatever the payload says, a new goal starts ``not_started`` with zero
    progress and zero points. Identifiers, ownership and timestamps are never
    taken from the payload.

    Args:
        payload: Validated creation fields

    Returns:
        Column values ready for ``GoalRow(**values, user_id=...)``
    """
    values = {k: v for k, v in payload.items() if k in MUTABLE_FIELDS}
    values["milestones"] = _stamp_milestones(values.get("milestones") or [])
    values["status"] = GoalStatus.NOT_STARTED.value
    values["progress"] = 0
    values["points"] = 0
    return values


def apply_update(existing: Mapping[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    """Compute the values to persist for a partial update.

    Fields present in the patch replace the stored ones verbatim once checked.
    Fields outside :data:`MUTABLE_FIELDS` (``id``, ``user_id``, ``points``,
    timestamps) are ignored.

    Points:
        - entering ``completed`` from any other status awards
          :func:`completion_points` for the type stored before the patch
        - staying ``completed`` keeps the stored points
        - leaving ``completed`` resets points to 0

    Args:
        existing: Stored goal fields (at least ``status`` and ``type``)
        patch: Fields sent by the owner

    Returns:
        Column values to write; may be empty

    Raises:
        ValidationError: On an illegal enum value, out-of-range progress,
            or a null required field
    """
    values: dict[str, Any] = {}

    for field, value in patch.items():
        if field not in MUTABLE_FIELDS:
            continue
        if value is None:
            if field in REQUIRED_FIELDS:
                raise ValidationError(f"{field} cannot be null", details=[{"field": field}])
            values[field] = None
        elif field in _ENUM_FIELDS:
            values[field] = _check_enum(field, value)
        elif field == "progress":
            values[field] = _check_progress(value)
        elif field == "milestones":
            values[field] = _stamp_milestones(value)
        elif field in ("title", "description") and not str(value).strip():
            raise ValidationError(f"{field} cannot be blank", details=[{"field": field}])
        else:
            values[field] = value

    old_status = existing.get("status")
    new_status = values.get("status", old_status)

    if new_status == GoalStatus.COMPLETED and old_status != GoalStatus.COMPLETED:
        values["points"] = completion_points(existing.get("type", GoalType.SHORT_TERM))
    elif new_status != GoalStatus.COMPLETED and existing.get("points"):
        values["points"] = 0

    return values


__all__ = [
    "LONG_TERM_POINTS",
    "SHORT_TERM_POINTS",
    "MUTABLE_FIELDS",
    "completion_points",
    "new_goal_values",
    "apply_update",
]
