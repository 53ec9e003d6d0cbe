"""
grading.py — NECTA grade bands and the grade engine.

Two curricula are supported:
  O_LEVEL (CSEE)   A, B, C, D, F      points 1-5
  A_LEVEL (ACSEE)  A, B, C, D, E, S, F points 1-7

Points are inverted-quality: 1 is the best grade. Every lookup goes through
GRADE_BANDS keyed on the Curriculum enum, so no call site branches on a
curriculum string.
"""

import logging
import math
import numbers
from enum import Enum
from typing import Any, Dict, List, Optional

from core.errors import InvalidMarksError, UnknownCurriculumError

logger = logging.getLogger(__name__)


class Curriculum(str, Enum):
    O_LEVEL = "O_LEVEL"
    A_LEVEL = "A_LEVEL"

    @property
    def label(self) -> str:
        return "O-Level" if self is Curriculum.O_LEVEL else "A-Level"


# Accepted spellings for curriculum tags coming from sheets or JSON payloads.
_CURRICULUM_ALIASES = {
    "o_level": Curriculum.O_LEVEL, "o-level": Curriculum.O_LEVEL, "o level": Curriculum.O_LEVEL,
    "olevel": Curriculum.O_LEVEL, "csee": Curriculum.O_LEVEL,
    "a_level": Curriculum.A_LEVEL, "a-level": Curriculum.A_LEVEL, "a level": Curriculum.A_LEVEL,
    "alevel": Curriculum.A_LEVEL, "acsee": Curriculum.A_LEVEL,
}


def parse_curriculum(value: Any) -> Curriculum:
    """Resolve a Curriculum from an enum member or a tag such as 'O_LEVEL' / 'a-level'."""
    if isinstance(value, Curriculum):
        return value
    key = str(value).strip().lower() if value is not None else ""
    if key in _CURRICULUM_ALIASES:
        return _CURRICULUM_ALIASES[key]
    raise UnknownCurriculumError(value)


# ── Grade Bands ─────────────────────────────────────────────────────

# (min_marks, grade, points, remarks), ordered high to low.
# O-Level uses the NECTA table with C from 50.
GRADE_BANDS = {
    Curriculum.O_LEVEL: [
        (75.0, "A", 1, "Excellent"),
        (65.0, "B", 2, "Very Good"),
        (50.0, "C", 3, "Good"),
        (30.0, "D", 4, "Satisfactory"),
        (0.0, "F", 5, "Fail"),
    ],
    Curriculum.A_LEVEL: [
        (80.0, "A", 1, "Excellent"),
        (70.0, "B", 2, "Very Good"),
        (60.0, "C", 3, "Good"),
        (50.0, "D", 4, "Satisfactory"),
        (40.0, "E", 5, "Pass"),
        (35.0, "S", 6, "Subsidiary Pass"),
        (0.0, "F", 7, "Fail"),
    ],
}

FAIL_GRADE = "F"
UNGRADED_REMARKS = "Not Graded"


def grades_for(curriculum) -> List[str]:
    """Grade labels of a curriculum, best first."""
    return [grade for _, grade, _, _ in GRADE_BANDS[parse_curriculum(curriculum)]]


# ── Grade Engine ────────────────────────────────────────────────────

def validate_marks(marks: Any) -> float:
    """Return marks as a float, or raise InvalidMarksError."""
    if isinstance(marks, bool) or not isinstance(marks, numbers.Real):
        raise InvalidMarksError(marks)
    try:
        value = float(marks)
    except OverflowError:
        raise InvalidMarksError(marks, "Marks are outside the 0-100 range.")
    if math.isnan(value) or math.isinf(value):
        raise InvalidMarksError(marks)
    if value < 0 or value > 100:
        raise InvalidMarksError(marks, f"Marks {marks!r} are outside the 0-100 range.")
    return value


def grade_and_points(marks: Any, curriculum) -> Dict[str, Any]:
    """Return {'grade', 'points'} for a 0-100 mark under the given curriculum."""
    value = validate_marks(marks)
    bands = GRADE_BANDS[parse_curriculum(curriculum)]
    for min_marks, grade, points, _ in bands:
        if value >= min_marks:
            return {"grade": grade, "points": points}
    # Unreachable for validated marks; the last band starts at 0.
    _, grade, points, _ = bands[-1]
    return {"grade": grade, "points": points}


def get_remarks(grade: Optional[str], curriculum) -> str:
    """Report-card remark for a grade, e.g. 'Very Good'."""
    for _, label, _, remarks in GRADE_BANDS[parse_curriculum(curriculum)]:
        if label == grade:
            return remarks
    return UNGRADED_REMARKS


def grade_subject_result(mark: Dict[str, Any], curriculum) -> Dict[str, Any]:
    """
    Grade one subject mark.

    Returns a new dict: the mark's fields plus grade, points and remarks.
    Raises InvalidMarksError when marks_obtained is not a valid mark.
    """
    curriculum = parse_curriculum(curriculum)
    value = validate_marks(mark.get("marks_obtained"))
    graded = grade_and_points(value, curriculum)
    result = dict(mark)
    result["marks_obtained"] = value
    result["is_principal"] = bool(mark.get("is_principal", False))
    result.update(graded)
    result["remarks"] = get_remarks(graded["grade"], curriculum)
    return result


def check_grade_drift(result: Dict[str, Any], curriculum) -> Dict[str, Any]:
    """
    Compare a stored grade/points pair with the one recomputed from its marks.

    Stored values that were hand-set or graded under an old table show up as
    issues; invalid marks are reported rather than raised.
    """
    actual = {"grade": result.get("grade"), "points": result.get("points")}
    try:
        expected = grade_and_points(result.get("marks_obtained"), curriculum)
    except InvalidMarksError as exc:
        return {
            "subject_id": result.get("subject_id"),
            "consistent": False,
            "issues": [str(exc)],
            "actual": actual,
            "expected": None,
        }

    issues = []
    if actual["grade"] != expected["grade"]:
        issues.append(f"grade ({actual['grade']} vs expected {expected['grade']})")
    if actual["points"] != expected["points"]:
        issues.append(f"points ({actual['points']} vs expected {expected['points']})")
    if issues:
        logger.info("Result %s has incorrect %s", result.get("subject_id"), " and ".join(issues))

    return {
        "subject_id": result.get("subject_id"),
        "consistent": not issues,
        "issues": issues,
        "actual": actual,
        "expected": expected,
    }


def get_all_grade_thresholds(curriculum) -> List[Dict[str, Any]]:
    """Return the full grade scale of a curriculum for legends and reference."""
    bands = GRADE_BANDS[parse_curriculum(curriculum)]
    thresholds = []
    for idx, (min_marks, grade, points, remarks) in enumerate(bands):
        max_marks = 100.0 if idx == 0 else bands[idx - 1][0] - 0.01
        thresholds.append(
            {
                "min": min_marks,
                "max": round(max_marks, 2),
                "grade": grade,
                "points": points,
                "remarks": remarks,
            }
        )
    return thresholds
