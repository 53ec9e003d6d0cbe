"""
Tests for core/results.py — student aggregates and class summaries end to end.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.errors import InvalidMarksError
from core.results import build_class_summary, build_student_aggregate, find_student

FORM4_MARKS = {
    "MATH": 78, "ENG": 60, "PHY": 45, "CHEM": 72,
    "BIO": 55, "GEO": 40, "HIST": 68, "KISW": 82,
}


def _marks(marks: dict, principals=()):
    return [
        {"subject_id": sid, "subject_name": sid.title(), "marks_obtained": m, "is_principal": sid in principals}
        for sid, m in marks.items()
    ]


@pytest.fixture
def class_students():
    return [
        {"student_id": "S1", "name": "Amina", "marks": _marks(FORM4_MARKS)},
        {"student_id": "S2", "name": "Baraka", "marks": _marks(FORM4_MARKS)},
        {"student_id": "S3", "name": "Chausiku", "marks": _marks(
            {"MATH": 90, "ENG": 90, "PHY": 90, "CHEM": 90, "BIO": 90, "HIST": 90, "KISW": 90}
        )},
        {"student_id": "S4", "name": "Daudi", "marks": []},
    ]


class TestStudentAggregate:

    def test_o_level_end_to_end(self):
        aggregate = build_student_aggregate("S1", "O_LEVEL", _marks(FORM4_MARKS))
        assert len(aggregate["subject_results"]) == 8
        assert len(aggregate["best_subjects"]) == 7
        assert "GEO" not in [r["subject_id"] for r in aggregate["best_subjects"]]
        assert aggregate["total_points"] == 16
        assert aggregate["division"] == "I"
        assert aggregate["total_marks"] == 500.0
        assert aggregate["average_marks"] == 62.5
        assert aggregate["rank"] is None

    def test_a_level_with_promotion(self):
        aggregate = build_student_aggregate(
            "F6-1", "A_LEVEL",
            _marks({"PHY": 82, "CHEM": 71, "GS": 66}, principals=("PHY", "CHEM")),
            student_name="Gift",
        )
        assert aggregate["promoted_subjects"] == ["GS"]
        assert aggregate["total_points"] == 1 + 2 + 3
        assert aggregate["division"] == "I"
        assert aggregate["student_name"] == "Gift"
        assert aggregate["warnings"]

    def test_idempotent(self):
        first = build_student_aggregate("S1", "O_LEVEL", _marks(FORM4_MARKS))
        second = build_student_aggregate("S1", "O_LEVEL", _marks(FORM4_MARKS))
        assert first == second

    def test_no_marks(self):
        aggregate = build_student_aggregate("S9", "O_LEVEL", [])
        assert aggregate["division"] == "0"
        assert aggregate["total_points"] == 0
        assert aggregate["average_marks"] == 0.0
        assert aggregate["best_subjects"] == []

    def test_invalid_mark_fails_fast(self):
        marks = _marks(FORM4_MARKS) + [{"subject_id": "CIV", "marks_obtained": 120}]
        with pytest.raises(InvalidMarksError):
            build_student_aggregate("S1", "O_LEVEL", marks)


class TestClassSummary:

    def test_ranks_with_ties(self, class_students):
        summary = build_class_summary("EX1", "F4A", "O_LEVEL", class_students)
        assert [(a["student_id"], a["rank"]) for a in summary["students"]] == [
            ("S3", 1), ("S1", 2), ("S2", 2), ("S4", None),
        ]
        assert summary["total_students"] == 4

    def test_rank_by_points(self, class_students):
        summary = build_class_summary("EX1", "F4A", "O_LEVEL", class_students, rank_by="totalPoints")
        assert summary["rank_by"] == "total_points"
        assert summary["students"][0]["student_id"] == "S3"
        assert summary["students"][0]["total_points"] == 7

    def test_class_average_and_statistics(self, class_students):
        summary = build_class_summary("EX1", "F4A", "O_LEVEL", class_students)
        assert summary["class_average"] == 71.67
        assert summary["statistics"]["median"] == 62.5
        assert summary["statistics"]["mode"] == 62.5

    def test_distributions(self, class_students):
        summary = build_class_summary("EX1", "F4A", "O_LEVEL", class_students)
        assert summary["division_distribution"] == {"I": 3, "II": 0, "III": 0, "IV": 0, "0": 1}
        assert sum(summary["grade_distribution"].values()) == 23
        assert summary["subject_performance"]["MATH"]["registered"] == 3
        assert summary["subject_performance"]["MATH"]["gpa"] == 1.0

    def test_subject_positions(self, class_students):
        summary = build_class_summary("EX1", "F4A", "O_LEVEL", class_students)
        s1 = find_student(summary, "S1")
        s3 = find_student(summary, "S3")
        eng = {r["subject_id"]: r["subject_position"] for r in s1["subject_results"]}
        assert eng["ENG"] == 2
        assert eng["MATH"] == 1
        assert {r["subject_id"]: r["subject_position"] for r in s3["subject_results"]}["ENG"] == 1

    def test_student_names_carried(self, class_students):
        summary = build_class_summary("EX1", "F4A", "O_LEVEL", class_students)
        assert find_student(summary, "S3")["student_name"] == "Chausiku"

    def test_find_student_unknown(self, class_students):
        summary = build_class_summary("EX1", "F4A", "O_LEVEL", class_students)
        assert find_student(summary, "nobody") is None

    def test_unknown_rank_metric(self, class_students):
        with pytest.raises(ValueError):
            build_class_summary("EX1", "F4A", "O_LEVEL", class_students, rank_by="height")

    def test_empty_class(self):
        summary = build_class_summary("EX1", "F4A", "A_LEVEL", [])
        assert summary["students"] == []
        assert summary["class_average"] == 0.0
        assert summary["subject_performance"] == {}
        assert summary["grade_distribution"]["S"] == 0
