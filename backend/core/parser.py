"""
parser.py — CSV, Excel, ODS mark-sheet ingestion with auto-detection.

Supports:
- CSV files
- Excel (.xlsx) — single and multi-sheet
- ODS (OpenDocument Spreadsheet)
- Auto-detect wide (subjects as columns) vs long (subject column) layout
- Fuzzy column name mapping
- Conversion of a cleaned sheet into per-student mark lists for the engine
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

SAMPLE_DATA_DIR = Path(__file__).parent.parent / "sample_data"

# Common column name variations for auto-mapping
COLUMN_ALIASES = {
    "student_id": [
        "student_id", "studentid", "student id", "id", "admission_no",
        "admission no", "adm_no", "adm no", "reg_no", "registration",
        "index_no", "index no", "candidate_no", "candidate no", "roll_number",
        "roll number", "s/n",
    ],
    "name": [
        "name", "student_name", "student name", "full_name", "full name",
        "candidate_name", "candidate name", "first_name", "surname",
    ],
    "class": [
        "class", "form", "class_name", "class name", "stream", "section",
    ],
    "subject": [
        "subject", "subject_name", "subject name", "paper",
    ],
    "marks": [
        "marks", "marks_obtained", "marks obtained", "mark", "score", "raw_score",
        "raw score", "perc", "percentage",
    ],
    "is_principal": [
        "is_principal", "principal", "principal_subject", "principal subject",
        "subject_type", "subject type",
    ],
    "exam_name": [
        "exam_name", "exam name", "exam", "assessment", "test", "exam_type", "exam type",
    ],
    "year": [
        "year", "academic_year", "academic year",
    ],
}

# Computed columns that appear on exported result sheets; never subjects.
RESULT_SHEET_COLUMNS = {
    "total", "total marks", "average", "avg", "points", "total points", "aggt",
    "division", "div", "rank", "position", "pos", "grade", "remarks",
    "sheet_source", "source_sheet", "upload_session_id", "gender", "sex",
}


def parse_upload(file_path: str) -> Dict[str, pd.DataFrame]:
    """
    Parse an uploaded file and return a dict of {sheet_name: DataFrame}.
    For CSV files, returns {"Sheet1": df}.
    """
    path = Path(file_path)
    ext = path.suffix.lower()

    if ext == ".csv":
        df = pd.read_csv(file_path, dtype=str)
        return {"Sheet1": df}

    elif ext in (".xlsx", ".ods"):
        engine = "openpyxl" if ext == ".xlsx" else "odf"
        xls = pd.ExcelFile(file_path, engine=engine)
        sheets = {}
        for sheet_name in xls.sheet_names:
            df = pd.read_excel(xls, sheet_name=sheet_name, dtype=str)
            # Skip empty sheets
            if not df.empty and len(df.columns) > 1:
                sheets[sheet_name] = df
        if not sheets:
            raise ValueError(f"No valid sheets found in the {ext} file.")
        return sheets

    else:
        raise ValueError(f"Unsupported file type: {ext}")


def detect_layout(df: pd.DataFrame) -> str:
    """
    Detect whether the data is in 'wide' or 'long' format.

    Wide format: one row per student, subjects as columns (column names are subject names).
    Long format: one row per student-subject combination (has a 'subject' column).
    """
    cols_lower = [str(c).lower().strip() for c in df.columns]

    if any(alias in cols_lower for alias in COLUMN_ALIASES["subject"]):
        return "long"

    known_metadata_cols = set(RESULT_SHEET_COLUMNS)
    for aliases in COLUMN_ALIASES.values():
        known_metadata_cols.update(aliases)

    non_metadata_cols = [c for c in cols_lower if c not in known_metadata_cols]

    # 3+ unrecognized columns are taken to be subject columns
    if len(non_metadata_cols) >= 3:
        return "wide"

    return "long"


def suggest_column_mapping(df: pd.DataFrame) -> Dict[str, Optional[str]]:
    """
    Suggest a mapping from expected field names to actual column names.
    Returns: { expected_field: actual_column_name_or_None }
    """
    cols_lower = {str(c).lower().strip(): c for c in df.columns}
    mapping: Dict[str, Optional[str]] = {}

    for field, aliases in COLUMN_ALIASES.items():
        matched = None
        for alias in aliases:
            if alias in cols_lower:
                matched = cols_lower[alias]
                break
        mapping[field] = matched

    return mapping


def convert_wide_to_long(df: pd.DataFrame, mapping: Dict[str, Optional[str]]) -> pd.DataFrame:
    """
    Convert a wide-format DataFrame to long format.
    Columns that are neither mapped nor known result-sheet columns are subjects.
    """
    metadata_cols = [v for v in mapping.values() if v and v in df.columns]
    ignored = [c for c in df.columns if str(c).lower().strip() in RESULT_SHEET_COLUMNS]
    subject_cols = [c for c in df.columns if c not in metadata_cols and c not in ignored]

    if not subject_cols:
        return df

    return df.melt(
        id_vars=metadata_cols,
        value_vars=subject_cols,
        var_name="subject",
        value_name="marks",
    )


def standardize_columns(df: pd.DataFrame, mapping: Dict[str, Optional[str]]) -> pd.DataFrame:
    """Rename mapped columns to their canonical field names."""
    renames = {actual: field for field, actual in mapping.items() if actual and actual in df.columns and actual != field}
    return df.rename(columns=renames)


def validate_marks(df: pd.DataFrame) -> List[Dict]:
    """
    Validate a long-layout sheet with canonical columns and return the issues found.
    """
    issues = []

    for field in ("student_id", "subject", "marks"):
        if field not in df.columns:
            issues.append({
                "type": "missing_column",
                "severity": "critical",
                "message": f"Required column '{field}' not found. "
                           f"Expected one of: {COLUMN_ALIASES.get(field, [])}",
            })

    if len(df) == 0:
        issues.append({
            "type": "empty_data",
            "severity": "critical",
            "message": "The uploaded file contains no data rows.",
        })

    if "marks" in df.columns:
        marks = pd.to_numeric(df["marks"], errors="coerce")
        invalid_count = int(marks.isna().sum() - df["marks"].isna().sum())
        if invalid_count > 0:
            issues.append({
                "type": "invalid_marks",
                "severity": "warning",
                "message": f"{invalid_count} marks could not be parsed as numbers.",
            })
        valid = marks.dropna()
        if ((valid < 0) | (valid > 100)).any():
            issues.append({
                "type": "marks_out_of_range",
                "severity": "warning",
                "message": "Some marks are outside 0-100 — likely data entry errors.",
            })

    if "student_id" in df.columns and "subject" in df.columns:
        dupe_count = int(df.duplicated(subset=["student_id", "subject"], keep=False).sum())
        if dupe_count > 0:
            issues.append({
                "type": "duplicates",
                "severity": "warning",
                "message": f"{dupe_count} duplicate entries detected (same student + subject).",
            })

    return issues


def dataframe_to_student_marks(
    df: pd.DataFrame,
    principal_subjects: Optional[Iterable[str]] = None,
) -> List[Dict[str, Any]]:
    """
    Group a cleaned long-layout sheet into engine input.

    Returns [{student_id, name, marks: [{subject_id, subject_name,
    marks_obtained, is_principal}]}] in sheet order. principal_subjects, when
    given, marks those subjects as principal for every student.
    """
    principal_set = {str(s).strip().lower() for s in principal_subjects} if principal_subjects else None
    students = []

    for student_id, group in df.groupby("student_id", sort=False):
        name = None
        if "name" in group.columns:
            names = group["name"].dropna()
            name = str(names.iloc[0]) if not names.empty else None

        marks = []
        for _, row in group.iterrows():
            subject = str(row["subject"])
            if principal_set is not None:
                is_principal = subject.strip().lower() in principal_set
            else:
                is_principal = bool(row.get("is_principal", False))
            marks.append({
                "subject_id": subject,
                "subject_name": subject,
                "marks_obtained": float(row["marks"]),
                "is_principal": is_principal,
            })

        students.append({"student_id": str(student_id), "name": name, "marks": marks})

    return students
