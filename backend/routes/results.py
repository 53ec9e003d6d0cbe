"""
Results routes — student aggregates, class summaries, subject positions,
grade consistency checks and mark edits.
"""

from fastapi import APIRouter, HTTPException

from core.grading import check_grade_drift, parse_curriculum
from core.history import apply_mark_edit
from core.ranking import subject_positions
from core.results import build_class_summary, build_student_aggregate
from settings import RANK_BY

router = APIRouter()


def _require(payload: dict, *fields: str):
    missing = [f for f in fields if payload.get(f) is None]
    if missing:
        raise HTTPException(400, f"Provide {', '.join(repr(f) for f in missing)}.")


def _require_objects(items, label: str):
    """400 unless items is a list of JSON objects."""
    if not isinstance(items, list):
        raise HTTPException(400, f"'{label}' must be a list.")
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise HTTPException(400, f"'{label}[{idx}]' must be an object.")


def class_summary_from_payload(payload: dict) -> dict:
    """Build a class summary from a {exam_id, class_id, curriculum, rank_by?, students} payload."""
    _require(payload, "curriculum", "students")
    students = payload["students"]
    _require_objects(students, "students")
    for idx, student in enumerate(students):
        _require_objects(student.get("marks") or [], f"students[{idx}].marks")
    try:
        return build_class_summary(
            payload.get("exam_id"),
            payload.get("class_id"),
            payload["curriculum"],
            students,
            rank_by=payload.get("rank_by") or RANK_BY,
        )
    except ValueError as e:
        # InvalidMarksError and UnknownCurriculumError are ValueErrors too
        raise HTTPException(400, str(e))


@router.post("/student")
async def student_result(payload: dict):
    """Grade one student's marks and compute best subjects, points and division."""
    _require(payload, "student_id", "curriculum", "marks")
    _require_objects(payload["marks"], "marks")
    try:
        return build_student_aggregate(
            payload["student_id"],
            payload["curriculum"],
            payload["marks"],
            principal_subject_ids=payload.get("principal_subject_ids"),
            student_name=payload.get("student_name"),
        )
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.post("/class")
async def class_result(payload: dict):
    """Ranked class summary with distributions and subject performance."""
    return class_summary_from_payload(payload)


@router.post("/subject-positions")
async def positions(payload: dict):
    """Positions of one subject's results across a class."""
    results = payload.get("results")
    _require_objects(results, "results")
    return {"results": subject_positions(results)}


@router.post("/check")
async def check_results(payload: dict):
    """Report stored grades/points that disagree with their marks."""
    _require(payload, "curriculum", "results")
    _require_objects(payload["results"], "results")
    try:
        curriculum = parse_curriculum(payload["curriculum"])
    except ValueError as e:
        raise HTTPException(400, str(e))

    checks = [check_grade_drift(result, curriculum) for result in payload["results"]]
    inconsistent = [c for c in checks if not c["consistent"]]
    return {
        "checked": len(checks),
        "inconsistent": len(inconsistent),
        "issues": inconsistent,
    }


@router.post("/edit")
async def edit_result(payload: dict):
    """Change a result's marks; returns the regraded result and its history entry."""
    _require(payload, "curriculum", "result", "new_marks")
    if not isinstance(payload["result"], dict):
        raise HTTPException(400, "'result' must be an object.")
    try:
        updated, entry = apply_mark_edit(
            payload["result"],
            payload["new_marks"],
            payload["curriculum"],
            user_id=payload.get("user_id"),
            is_principal=payload.get("is_principal"),
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"result": updated, "history": entry}
