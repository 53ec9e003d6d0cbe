"""
results.py — Student aggregates and class summaries.

A student aggregate is built from one student's raw marks for one exam:
every mark is graded, the best subjects are selected and the division is
classified from their points. A class summary ranks the aggregates and adds
distributions, subject performance and statistics.

Everything is recomputed from marks on each call; nothing is cached.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from core.grading import grade_subject_result, parse_curriculum
from core.ranking import parse_metric, rank_students, subject_positions
from core.selection import select_best_subjects
from core.stats import (
    class_statistics,
    division_distribution,
    grade_distribution,
    subject_performance,
)

logger = logging.getLogger(__name__)


def build_student_aggregate(
    student_id: Any,
    curriculum,
    marks: Iterable[Dict[str, Any]],
    principal_subject_ids: Optional[Iterable[Any]] = None,
    student_name: Optional[str] = None,
    log: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    """
    Grade one student's marks and compute best subjects, points and division.

    Raises InvalidMarksError if any mark is invalid; nothing is returned for a
    partially valid mark list.
    """
    log = log or logger
    curriculum = parse_curriculum(curriculum)
    subject_results = [grade_subject_result(mark, curriculum) for mark in marks or []]
    selection = select_best_subjects(subject_results, curriculum, principal_subject_ids, log=log)

    total_marks = sum(r["marks_obtained"] for r in subject_results)
    average_marks = round(total_marks / len(subject_results), 2) if subject_results else 0.0

    aggregate = {
        "student_id": student_id,
        "curriculum": curriculum.value,
        "subject_results": subject_results,
        "best_subjects": selection["selected"],
        "total_points": selection["total_points"],
        "total_marks": round(total_marks, 2),
        "average_marks": average_marks,
        "division": selection["division"],
        "promoted_subjects": selection["promoted"],
        "rank": None,
        "warnings": selection["warnings"],
    }
    if student_name is not None:
        aggregate["student_name"] = student_name
    return aggregate


def _assign_subject_positions(aggregates: List[Dict[str, Any]], log: logging.Logger) -> List[Dict[str, Any]]:
    """Return copies of the aggregates with subject_position set on every subject result."""
    positioned = [dict(a, subject_results=[dict(r) for r in a["subject_results"]]) for a in aggregates]

    by_subject: Dict[str, List[tuple]] = {}
    for a_idx, aggregate in enumerate(positioned):
        for r_idx, result in enumerate(aggregate["subject_results"]):
            by_subject.setdefault(str(result.get("subject_id")), []).append((a_idx, r_idx))

    for slots in by_subject.values():
        results = [
            dict(positioned[a_idx]["subject_results"][r_idx], student_id=positioned[a_idx]["student_id"])
            for a_idx, r_idx in slots
        ]
        for (a_idx, r_idx), result in zip(slots, subject_positions(results, log=log)):
            positioned[a_idx]["subject_results"][r_idx]["subject_position"] = result["subject_position"]

    return positioned


def build_class_summary(
    exam_id: Any,
    class_id: Any,
    curriculum,
    students: Iterable[Dict[str, Any]],
    rank_by: str = "average_marks",
    log: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    """
    Build the ranked class summary for one exam.

    Each entry of students is {student_id, marks, student_name?,
    principal_subject_ids?}.
    """
    log = log or logger
    curriculum = parse_curriculum(curriculum)
    rank_by = parse_metric(rank_by)

    aggregates = [
        build_student_aggregate(
            student.get("student_id"),
            curriculum,
            student.get("marks") or [],
            principal_subject_ids=student.get("principal_subject_ids"),
            student_name=student.get("student_name") or student.get("name"),
            log=log,
        )
        for student in students
    ]
    ranked = _assign_subject_positions(rank_students(aggregates, rank_by, log=log), log)

    ranked_only = [a for a in ranked if a["rank"] is not None]
    averages = [a["average_marks"] for a in ranked_only]
    all_results = [r for a in ranked for r in a["subject_results"]]

    log.info(
        "Built %s class summary for class %s, exam %s: %d students, %d ranked",
        curriculum.label, class_id, exam_id, len(ranked), len(ranked_only),
    )

    return {
        "exam_id": exam_id,
        "class_id": class_id,
        "curriculum": curriculum.value,
        "rank_by": rank_by,
        "students": ranked,
        "total_students": len(ranked),
        "division_distribution": division_distribution(ranked),
        "grade_distribution": grade_distribution(all_results, curriculum),
        "subject_performance": subject_performance(ranked, curriculum),
        "class_average": round(sum(averages) / len(averages), 2) if averages else 0.0,
        "statistics": class_statistics(averages),
    }


def find_student(summary: Dict[str, Any], student_id: Any) -> Optional[Dict[str, Any]]:
    """Look up a student's aggregate in a class summary by id."""
    for aggregate in summary.get("students", []):
        if str(aggregate.get("student_id")) == str(student_id):
            return aggregate
    return None
