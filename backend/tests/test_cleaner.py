"""
Tests for core/cleaner.py — subject normalisation, mark coercion, duplicate handling.
"""

import os
import sys

import pytest
import pandas as pd

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.cleaner import clean_marks, generate_cleaning_report, normalize_subject


@pytest.fixture
def sample_df():
    """A small long-layout mark sheet."""
    return pd.DataFrame({
        "student_id": ["S001", "S001", "S002", "S002", "S003", "S003"],
        "name": ["Amina", "Amina", " Baraka ", "Baraka", "Chausiku", "Chausiku"],
        "subject": ["Maths", "Eng", "mathematics", "english", "B/MATH", "kisw"],
        "marks": ["78", "60", "55", "48", "91", "absent"],
        "is_principal": ["yes", "no", "P", "", "1", "0"],
    })


class TestNormalizeSubject:

    @pytest.mark.parametrize("raw,expected", [
        ("maths", "Basic Mathematics"),
        (" B/MATH ", "Basic Mathematics"),
        ("Adv Maths", "Advanced Mathematics"),
        ("kisw", "Kiswahili"),
        ("GS", "General Studies"),
        ("food science", "Food Science"),
    ])
    def test_variants(self, raw, expected):
        assert normalize_subject(raw) == expected


class TestCleanMarks:

    def test_returns_tuple(self, sample_df):
        cleaned, report = clean_marks(sample_df)
        assert isinstance(cleaned, pd.DataFrame)
        assert isinstance(report, dict)

    def test_subjects_normalised(self, sample_df):
        cleaned, _ = clean_marks(sample_df)
        assert set(cleaned["subject"]) == {"Basic Mathematics", "English Language"}

    def test_unparseable_marks_dropped(self, sample_df):
        cleaned, report = clean_marks(sample_df)
        assert len(cleaned) == 5
        assert cleaned["marks"].tolist() == [78.0, 60.0, 55.0, 48.0, 91.0]
        assert any("could not be converted" in w for w in report["warnings"])

    def test_whitespace_trimmed(self, sample_df):
        cleaned, _ = clean_marks(sample_df)
        assert "Baraka" in cleaned["name"].tolist()
        assert " Baraka " not in cleaned["name"].tolist()

    def test_principal_flag(self, sample_df):
        cleaned, _ = clean_marks(sample_df)
        assert cleaned["is_principal"].tolist() == [True, False, True, False, True]

    def test_out_of_range_removed(self):
        df = pd.DataFrame({"student_id": ["S1", "S2", "S3"], "subject": ["Math"] * 3, "marks": [78, -10, 150]})
        cleaned, report = clean_marks(df)
        assert cleaned["marks"].tolist() == [78.0]
        assert any("outside 0-100" in w for w in report["warnings"])

    def test_exact_duplicates_removed(self):
        df = pd.DataFrame({"student_id": ["S1", "S1"], "subject": ["Math", "maths"], "marks": [78, 78]})
        cleaned, report = clean_marks(df)
        assert len(cleaned) == 1
        assert report["inconsistent_duplicates"] == []

    def test_conflicting_duplicates_keep_first(self, caplog):
        df = pd.DataFrame({"student_id": ["S1", "S1", "S2"], "subject": ["Maths", "math", "Maths"], "marks": [78, 80, 60]})
        cleaned, report = clean_marks(df)
        assert len(cleaned) == 2
        assert report["inconsistent_duplicates"] == [
            {"student_id": "S1", "subject": "Basic Mathematics", "marks": [78.0, 80.0], "kept": 78.0}
        ]
        assert cleaned.loc[cleaned["student_id"] == "S1", "marks"].tolist() == [78.0]
        assert "Inconsistent duplicate" in caplog.text

    def test_report_counts(self, sample_df):
        _, report = clean_marks(sample_df)
        assert report["original_rows"] == 6
        assert report["cleaned_rows"] == 5
        assert "marks" in report["columns"]


class TestCleaningReport:

    def test_report_text(self, sample_df):
        _, report = clean_marks(sample_df)
        text = generate_cleaning_report(report)
        assert "Cleaning Report" in text
        assert "Original: 6 rows" in text
        assert "Warnings" in text
