"""
Tests for core/ranking.py — competition ranking and subject positions.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.ranking import competition_ranks, parse_metric, rank_students, subject_positions


def _aggregate(student_id, average_marks, total_points, subjects=1):
    return {
        "student_id": student_id,
        "average_marks": average_marks,
        "total_points": total_points,
        "subject_results": [{"subject_id": f"S{i}"} for i in range(subjects)],
    }


class TestCompetitionRanks:

    def test_ties_consume_slots(self):
        assert competition_ranks([90, 80, 80, 70], ascending=False) == [1, 2, 2, 4]

    def test_ascending(self):
        assert competition_ranks([16, 7, 16, 25], ascending=True) == [2, 1, 2, 4]

    def test_empty(self):
        assert competition_ranks([], ascending=True) == []


class TestParseMetric:

    @pytest.mark.parametrize("value,expected", [
        ("average_marks", "average_marks"),
        ("averageMarks", "average_marks"),
        ("totalPoints", "total_points"),
        ("points", "total_points"),
    ])
    def test_aliases(self, value, expected):
        assert parse_metric(value) == expected

    def test_unknown_metric(self):
        with pytest.raises(ValueError):
            parse_metric("surname")


class TestRankStudents:

    def test_by_average_descending(self):
        ranked = rank_students([
            _aggregate("S1", 70.0, 20),
            _aggregate("S2", 90.0, 7),
            _aggregate("S3", 80.0, 12),
            _aggregate("S4", 80.0, 14),
        ])
        assert [(a["student_id"], a["rank"]) for a in ranked] == [
            ("S2", 1), ("S3", 2), ("S4", 2), ("S1", 4),
        ]

    def test_by_points_ascending(self):
        ranked = rank_students(
            [_aggregate("S1", 70.0, 20), _aggregate("S2", 90.0, 7), _aggregate("S3", 80.0, 12)],
            metric="total_points",
        )
        assert [a["student_id"] for a in ranked] == ["S2", "S3", "S1"]
        assert [a["rank"] for a in ranked] == [1, 2, 3]

    def test_rounded_averages_tie(self):
        ranked = rank_students([_aggregate("S1", 80.004, 10), _aggregate("S2", 80.001, 10)])
        assert [a["rank"] for a in ranked] == [1, 1]

    def test_students_without_subjects_are_unranked(self, caplog):
        ranked = rank_students([
            _aggregate("S1", 0.0, 0, subjects=0),
            _aggregate("S2", 55.0, 18),
        ])
        assert ranked[0]["student_id"] == "S2"
        assert ranked[0]["rank"] == 1
        assert ranked[1]["rank"] is None
        assert "S1" in caplog.text

    def test_does_not_mutate_input(self):
        aggregates = [_aggregate("S1", 70.0, 20)]
        rank_students(aggregates)
        assert "rank" not in aggregates[0]

    def test_deterministic(self):
        aggregates = [_aggregate("S1", 80.0, 10), _aggregate("S2", 80.0, 10), _aggregate("S3", 60.0, 20)]
        assert rank_students(aggregates) == rank_students(aggregates)


class TestSubjectPositions:

    def test_positions_by_points(self):
        results = [
            {"student_id": "S1", "points": 3},
            {"student_id": "S2", "points": 1},
            {"student_id": "S3", "points": 1},
            {"student_id": "S4", "points": 4},
        ]
        positioned = subject_positions(results)
        assert [r["student_id"] for r in positioned] == ["S1", "S2", "S3", "S4"]
        assert [r["subject_position"] for r in positioned] == [3, 1, 1, 4]

    def test_missing_points_get_none(self):
        positioned = subject_positions([{"student_id": "S1", "points": 2}, {"student_id": "S2"}])
        assert positioned[0]["subject_position"] == 1
        assert positioned[1]["subject_position"] is None

    def test_empty(self):
        assert subject_positions([]) == []
