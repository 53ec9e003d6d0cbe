"""
cleaner.py — Pandas cleaning pipeline for uploaded mark sheets.

Works on the long layout produced by the parser (one row per student and
subject, canonical column names). Handles:
- Whitespace fixes
- Subject name normalization (NECTA subject names)
- Marks → numeric conversion, out-of-range flagging
- Duplicate entries, including duplicates with inconsistent marks
- Cleaning report generation
"""

import logging
from typing import Dict, Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


# ── Subject Normalization ───────────────────────────────────────────

SUBJECT_MAP = {
    "maths": "Basic Mathematics", "math": "Basic Mathematics", "mathematics": "Basic Mathematics",
    "b/math": "Basic Mathematics", "b/maths": "Basic Mathematics", "basic mathematics": "Basic Mathematics",
    "basic maths": "Basic Mathematics",
    "adv maths": "Advanced Mathematics", "adv math": "Advanced Mathematics",
    "advanced mathematics": "Advanced Mathematics", "a/math": "Advanced Mathematics",
    "bam": "Basic Applied Mathematics", "basic applied mathematics": "Basic Applied Mathematics",
    "eng": "English Language", "english": "English Language", "english language": "English Language",
    "engl": "English Language",
    "lit": "Literature in English", "literature": "Literature in English",
    "literature in english": "Literature in English",
    "kis": "Kiswahili", "kiswahili": "Kiswahili", "swahili": "Kiswahili", "kisw": "Kiswahili",
    "bio": "Biology", "biology": "Biology",
    "phy": "Physics", "physics": "Physics", "phys": "Physics",
    "chem": "Chemistry", "chemistry": "Chemistry",
    "hist": "History", "history": "History",
    "geo": "Geography", "geography": "Geography", "geog": "Geography",
    "civ": "Civics", "civics": "Civics",
    "gs": "General Studies", "general studies": "General Studies",
    "econ": "Economics", "economics": "Economics",
    "comm": "Commerce", "commerce": "Commerce",
    "b/k": "Book-Keeping", "bk": "Book-Keeping", "book keeping": "Book-Keeping",
    "book-keeping": "Book-Keeping", "bookkeeping": "Book-Keeping",
    "agri": "Agriculture", "agriculture": "Agriculture", "agric": "Agriculture",
    "comp": "Computer Studies", "computer": "Computer Studies",
    "computer studies": "Computer Studies", "ict": "Computer Studies",
    "bk/bible": "Bible Knowledge", "bible knowledge": "Bible Knowledge", "b/knowledge": "Bible Knowledge",
    "ik": "Islamic Knowledge", "islamic knowledge": "Islamic Knowledge",
    "french": "French", "fre": "French",
    "arabic": "Arabic",
    "fn": "Food and Nutrition", "food and nutrition": "Food and Nutrition",
}


def normalize_subject(value: str) -> str:
    """Normalize subject name variants to standard names."""
    if pd.isna(value):
        return value
    cleaned = str(value).strip().lower()
    return SUBJECT_MAP.get(cleaned, str(value).strip().title())


# ── Main Cleaning Pipeline ──────────────────────────────────────────

def clean_marks(df: pd.DataFrame) -> Tuple[pd.DataFrame, Dict]:
    """
    Clean a long-layout mark sheet and return (cleaned_df, cleaning_report).

    Expects canonical columns: student_id, subject, marks; name and
    is_principal are optional.
    """
    report: Dict = {
        "original_rows": len(df),
        "original_columns": len(df.columns),
        "steps": [],
        "warnings": [],
        "inconsistent_duplicates": [],
    }

    cleaned = df.copy()

    # ── 1. Trim whitespace ─────────────────────────────────────────
    str_cols = cleaned.select_dtypes(include=["object", "string"]).columns
    for col in str_cols:
        cleaned[col] = cleaned[col].map(lambda v: v.strip() if isinstance(v, str) else v)
    cleaned = cleaned.replace({"nan": np.nan, "NaN": np.nan, "": np.nan, "None": np.nan, "-": np.nan})
    report["steps"].append("Trimmed whitespace from all string fields.")

    # ── 2. Subject normalization ───────────────────────────────────
    if "subject" in cleaned.columns:
        original_subjects = cleaned["subject"].dropna().unique()
        cleaned["subject"] = cleaned["subject"].apply(normalize_subject)
        normalized_count = sum(
            1 for s in original_subjects
            if str(s).strip().lower() in SUBJECT_MAP
            and SUBJECT_MAP[str(s).strip().lower()] != str(s).strip()
        )
        report["steps"].append(
            f"Normalized {normalized_count} subject name variants. "
            f"Subjects found: {list(cleaned['subject'].dropna().unique())}"
        )

    # ── 3. Convert marks to numeric ────────────────────────────────
    if "marks" in cleaned.columns:
        original_na = cleaned["marks"].isna().sum()
        cleaned["marks"] = pd.to_numeric(cleaned["marks"], errors="coerce").astype(float)
        parse_errors = int(cleaned["marks"].isna().sum() - original_na)
        if parse_errors > 0:
            report["warnings"].append(f"{parse_errors} mark values could not be converted to numbers.")

        out_of_range = cleaned["marks"].notna() & ((cleaned["marks"] < 0) | (cleaned["marks"] > 100))
        if out_of_range.any():
            report["warnings"].append(
                f"{int(out_of_range.sum())} marks are outside 0-100 and were removed."
            )
            cleaned.loc[out_of_range, "marks"] = np.nan

        missing = int(cleaned["marks"].isna().sum())
        if missing > 0:
            report["steps"].append(f"Dropped {missing} rows without usable marks (absent or not entered).")
            cleaned = cleaned[cleaned["marks"].notna()]
        report["steps"].append("Converted marks to numeric.")

    # ── 4. Principal flag ──────────────────────────────────────────
    if "is_principal" in cleaned.columns:
        truthy = {"1", "true", "yes", "y", "p", "principal"}
        cleaned["is_principal"] = cleaned["is_principal"].map(
            lambda v: str(v).strip().lower() in truthy if pd.notna(v) else False
        )

    # ── 5. Deduplication ───────────────────────────────────────────
    key_cols = [c for c in ("student_id", "subject") if c in cleaned.columns]
    if len(key_cols) == 2:
        before = len(cleaned)
        cleaned = cleaned.drop_duplicates(subset=key_cols + ["marks"], keep="first")
        removed = before - len(cleaned)
        if removed > 0:
            report["steps"].append(f"Removed {removed} duplicate rows using keys: {key_cols + ['marks']}.")

        conflicting = cleaned[cleaned.duplicated(subset=key_cols, keep=False)]
        for (student_id, subject), group in conflicting.groupby(key_cols, sort=False):
            marks = [float(m) for m in group["marks"].tolist()]
            report["inconsistent_duplicates"].append(
                {"student_id": str(student_id), "subject": str(subject), "marks": marks, "kept": marks[0]}
            )
            logger.warning(
                "Inconsistent duplicate marks for student %s, subject %s: %s; keeping %s",
                student_id, subject, marks, marks[0],
            )
        if report["inconsistent_duplicates"]:
            cleaned = cleaned.drop_duplicates(subset=key_cols, keep="first")
            report["warnings"].append(
                f"{len(report['inconsistent_duplicates'])} student/subject pairs had conflicting marks; "
                "the first entry was kept."
            )
        elif removed == 0:
            report["steps"].append("No duplicate rows found.")

    # ── Final summary ─────────────────────────────────────────────
    cleaned = cleaned.reset_index(drop=True)
    report["cleaned_rows"] = len(cleaned)
    report["cleaned_columns"] = len(cleaned.columns)
    report["columns"] = list(cleaned.columns)

    return cleaned, report


def generate_cleaning_report(report: Dict) -> str:
    """Generate a human-readable cleaning report text."""
    lines = [
        "═══ Mark Sheet Cleaning Report ═══",
        f"Original: {report['original_rows']} rows × {report['original_columns']} columns",
        f"Cleaned:  {report['cleaned_rows']} rows × {report['cleaned_columns']} columns",
        "",
        "Steps performed:",
    ]
    for i, step in enumerate(report["steps"], 1):
        lines.append(f"  {i}. {step}")

    if report["warnings"]:
        lines.append("")
        lines.append("⚠ Warnings:")
        for w in report["warnings"]:
            lines.append(f"  • {w}")

    return "\n".join(lines)
