"""
Grading routes — grade scales, single-mark grading and division lookup.
"""

from fastapi import APIRouter, HTTPException

from core.divisions import classify, get_division_scale
from core.errors import InvalidMarksError, UnknownCurriculumError
from core.grading import Curriculum, get_all_grade_thresholds, get_remarks, grade_and_points, parse_curriculum

router = APIRouter()


def _curriculum_from_payload(payload: dict) -> Curriculum:
    try:
        return parse_curriculum(payload.get("curriculum"))
    except UnknownCurriculumError as e:
        raise HTTPException(400, str(e))


@router.get("/scales")
async def grade_scales():
    """Grade and division scales of every curriculum."""
    return {
        curriculum.value: {
            "label": curriculum.label,
            "grades": get_all_grade_thresholds(curriculum),
            "divisions": get_division_scale(curriculum),
        }
        for curriculum in Curriculum
    }


@router.post("/grade")
async def grade(payload: dict):
    """Grade one mark: {marks, curriculum} -> {grade, points, remarks}."""
    curriculum = _curriculum_from_payload(payload)
    try:
        graded = grade_and_points(payload.get("marks"), curriculum)
    except InvalidMarksError as e:
        raise HTTPException(400, str(e))
    graded["remarks"] = get_remarks(graded["grade"], curriculum)
    return graded


@router.post("/division")
async def division(payload: dict):
    """Classify a best-subject points total: {points, curriculum} -> {division}."""
    curriculum = _curriculum_from_payload(payload)
    if "points" not in payload:
        raise HTTPException(400, "Provide 'points'.")
    return {
        "curriculum": curriculum.value,
        "points": payload["points"],
        "division": classify(payload["points"], curriculum),
    }
