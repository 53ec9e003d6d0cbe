"""
Tests for core/divisions.py — division bands and graceful degradation.
"""

import math
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.divisions import classify, describe_division_scale, get_division_scale


class TestClassify:

    @pytest.mark.parametrize("points,division", [
        (7, "I"), (17, "I"), (18, "II"), (21, "II"), (22, "III"),
        (25, "III"), (26, "IV"), (33, "IV"), (34, "0"), (6, "0"), (0, "0"),
    ])
    def test_o_level(self, points, division):
        assert classify(points, "O_LEVEL") == division

    @pytest.mark.parametrize("points,division", [
        (3, "I"), (9, "I"), (10, "II"), (12, "II"), (13, "III"),
        (17, "III"), (18, "IV"), (19, "IV"), (20, "0"), (2, "0"),
    ])
    def test_a_level(self, points, division):
        assert classify(points, "A_LEVEL") == division

    @pytest.mark.parametrize("points", [None, "sixteen", math.nan, True])
    def test_non_numeric_points_degrade(self, points, caplog):
        assert classify(points, "O_LEVEL") == "0"
        assert "DegradedInputWarning" in caplog.text

    def test_points_too_large_for_float_degrade(self, caplog):
        assert classify(10 ** 400, "O_LEVEL") == "0"
        assert "DegradedInputWarning" in caplog.text

    def test_injected_logger(self, caplog):
        import logging
        log = logging.getLogger("results.test")
        classify(None, "A_LEVEL", log=log)
        assert any(r.name == "results.test" for r in caplog.records)


class TestDivisionScale:

    def test_scale_entries(self):
        scale = get_division_scale("O_LEVEL")
        assert scale[0] == {"division": "I", "min_points": 7, "max_points": 17}
        assert [s["division"] for s in scale] == ["I", "II", "III", "IV"]

    def test_description(self):
        text = describe_division_scale("A_LEVEL")
        assert text.startswith("Division I: 3-9 points")
        assert "Division IV: 18-19 points" in text
