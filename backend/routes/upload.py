"""
Upload routes — mark-sheet upload, cleaning and conversion to student marks.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional

import pandas as pd
from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from core.cleaner import clean_marks, generate_cleaning_report
from core.parser import (
    SAMPLE_DATA_DIR,
    convert_wide_to_long,
    dataframe_to_student_marks,
    detect_layout,
    parse_upload,
    standardize_columns,
    suggest_column_mapping,
    validate_marks,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_EXTENSIONS = (".csv", ".xlsx", ".ods")

# Keep upload path stable regardless of process working directory.
UPLOAD_DIR = Path(__file__).resolve().parent.parent / "uploads"
UPLOAD_DIR.mkdir(exist_ok=True)

SAMPLE_FILES = {
    "form4": SAMPLE_DATA_DIR / "sample_form4_marks.csv",
    "form6": SAMPLE_DATA_DIR / "sample_form6_marks.csv",
}


def _split_subjects(value: Optional[str]):
    if not value:
        return None
    return [s.strip() for s in value.split(",") if s.strip()]


def process_mark_sheet(file_path: str, principal_subjects=None) -> dict:
    """
    Parse, clean and convert a mark sheet into per-student mark lists.

    All sheets of a workbook are combined. Wide sheets (one column per
    subject) are melted to one row per student and subject first.
    """
    sheets_data = parse_upload(file_path)

    all_dfs = []
    for sheet_name, df in sheets_data.items():
        df = df.copy()
        df["sheet_source"] = sheet_name
        all_dfs.append(df)
    combined_df = pd.concat(all_dfs, ignore_index=True)

    layout = detect_layout(combined_df)
    mapping = suggest_column_mapping(combined_df)
    if layout == "wide":
        wide_mapping = {k: v for k, v in mapping.items() if k not in ("subject", "marks")}
        combined_df = convert_wide_to_long(combined_df, wide_mapping)
    combined_df = standardize_columns(combined_df, mapping)

    issues = validate_marks(combined_df)
    critical = [i["message"] for i in issues if i["severity"] == "critical"]
    if critical:
        raise ValueError(" ".join(critical))

    cleaned_df, cleaning_report = clean_marks(combined_df)
    students = dataframe_to_student_marks(cleaned_df, principal_subjects=principal_subjects)

    logger.info(
        "Processed mark sheet %s: %s layout, %d rows, %d students",
        Path(file_path).name, layout, len(cleaned_df), len(students),
    )

    return {
        "sheets": list(sheets_data.keys()),
        "layout": layout,
        "mapping": mapping,
        "issues": issues,
        "cleaning_report": cleaning_report,
        "cleaning_summary": generate_cleaning_report(cleaning_report),
        "students": students,
    }


@router.post("/marks")
async def upload_marks(
    file: UploadFile = File(...),
    principal_subjects: Optional[str] = Form(None),  # comma-separated
):
    """
    Upload a CSV, Excel or ODS mark sheet.
    Returns the detected layout, cleaning report and per-student marks ready
    for /api/results/class.
    """
    ext = Path(file.filename or "").suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(400, f"Unsupported file type: {ext}. Use CSV, Excel (.xlsx), or ODS.")

    save_path = UPLOAD_DIR / f"{uuid.uuid4()}{ext}"
    try:
        with open(save_path, "wb") as f:
            while True:
                chunk = await file.read(1024 * 1024)
                if not chunk:
                    break
                f.write(chunk)

        processed = process_mark_sheet(str(save_path), _split_subjects(principal_subjects))
        processed["filename"] = file.filename
        return processed

    except (ValueError, KeyError) as e:
        logger.warning("Rejected upload %s: %s", file.filename, e)
        raise HTTPException(400, f"Failed to process upload '{file.filename}': {str(e)}")
    finally:
        # Uploaded sheets hold student data; never keep them on disk.
        save_path.unlink(missing_ok=True)


@router.get("/sample/{dataset_name}")
async def load_sample_data(dataset_name: str):
    """Load one of the bundled sample mark sheets."""
    if dataset_name not in SAMPLE_FILES:
        raise HTTPException(404, f"Sample dataset '{dataset_name}' not found. Available: {list(SAMPLE_FILES.keys())}")

    file_path = SAMPLE_FILES[dataset_name]
    if not file_path.exists():
        raise HTTPException(404, f"Sample file not found on disk: {file_path.name}")

    principal_subjects = None
    if dataset_name == "form6":
        principal_subjects = ["Physics", "Chemistry", "Advanced Mathematics"]

    try:
        processed = process_mark_sheet(str(file_path), principal_subjects)
    except (ValueError, KeyError) as e:
        raise HTTPException(400, f"Failed to load sample dataset '{dataset_name}': {str(e)}")
    processed["filename"] = file_path.name
    return processed
