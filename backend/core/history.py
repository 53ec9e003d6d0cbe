"""
history.py — Mark edit history entries.

Every change to a graded result produces an audit entry carrying the values
before and after the change. Edits and reverts always regrade from marks, so
a stored grade can never drift from its marks through this path. Storing the
entries is the persistence layer's job.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from core.grading import grade_subject_result, parse_curriculum

logger = logging.getLogger(__name__)

CHANGE_TYPES = ("CREATE", "UPDATE", "DELETE")
TRACKED_FIELDS = ("marks_obtained", "grade", "points", "is_principal", "comment")


def _snapshot(result: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if result is None:
        return None
    return {field: result.get(field) for field in TRACKED_FIELDS if field in result}


def _entry(change_type: str, subject_id: Any, curriculum, previous, new, user_id) -> Dict[str, Any]:
    return {
        "change_type": change_type,
        "subject_id": subject_id,
        "curriculum": parse_curriculum(curriculum).value,
        "previous_values": _snapshot(previous),
        "new_values": _snapshot(new),
        "user_id": user_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def record_creation(result: Dict[str, Any], curriculum, user_id: Any = None) -> Dict[str, Any]:
    """History entry for a newly entered result."""
    return _entry("CREATE", result.get("subject_id"), curriculum, None, result, user_id)


def record_deletion(result: Dict[str, Any], curriculum, user_id: Any = None) -> Dict[str, Any]:
    """History entry for a deleted result."""
    return _entry("DELETE", result.get("subject_id"), curriculum, result, None, user_id)


def apply_mark_edit(
    result: Dict[str, Any],
    new_marks: Any,
    curriculum,
    user_id: Any = None,
    is_principal: Optional[bool] = None,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Change a result's marks and regrade it.

    Returns (updated_result, history_entry). Raises InvalidMarksError before
    anything changes if new_marks is invalid.
    """
    edited = dict(result, marks_obtained=new_marks)
    if is_principal is not None:
        edited["is_principal"] = is_principal
    updated = grade_subject_result(edited, curriculum)

    logger.info(
        "Marks for subject %s changed from %s to %s (%s -> %s)",
        result.get("subject_id"), result.get("marks_obtained"), updated["marks_obtained"],
        result.get("grade"), updated["grade"],
    )
    return updated, _entry("UPDATE", result.get("subject_id"), curriculum, result, updated, user_id)


def revert_to_entry(
    result: Dict[str, Any],
    entry: Dict[str, Any],
    curriculum,
    user_id: Any = None,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Restore a result to the state recorded in a history entry.

    CREATE/UPDATE entries restore their new values, DELETE entries their
    previous values. Grade and points are recomputed from the restored marks.
    """
    change_type = entry.get("change_type")
    if change_type not in CHANGE_TYPES:
        raise ValueError(f"Unknown change type {change_type!r}.")

    values = entry.get("previous_values") if change_type == "DELETE" else entry.get("new_values")
    if not values or "marks_obtained" not in values:
        raise ValueError("History entry has no marks to restore.")

    restored = dict(result)
    restored.update({k: v for k, v in values.items() if k not in ("grade", "points")})
    restored = grade_subject_result(restored, curriculum)

    logger.info("Reverted subject %s to %s entry from %s", result.get("subject_id"), change_type, entry.get("timestamp"))
    return restored, _entry("UPDATE", result.get("subject_id"), curriculum, result, restored, user_id)
