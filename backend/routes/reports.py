"""
Report routes — PDF and Excel result report endpoints.

Every endpoint takes the class request accepted by /api/results/class and
builds the class summary before rendering.
"""

import logging
import re
import uuid
from pathlib import Path

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from core.report_builder import (
    generate_class_report_pdf,
    generate_class_results_excel,
    generate_student_report_pdf,
)
from core.results import find_student
from routes.results import class_summary_from_payload
from settings import SCHOOL_NAME

logger = logging.getLogger(__name__)

router = APIRouter()

UPLOAD_DIR = Path(__file__).resolve().parent.parent / "uploads"
REPORTS_DIR = UPLOAD_DIR / "reports"
REPORTS_DIR.mkdir(parents=True, exist_ok=True)


def _school_name(payload: dict) -> str:
    """Prefer a school name sent with the request; fallback to env config."""
    name = str(payload.get("school_name") or "").strip()
    return name or SCHOOL_NAME


def _safe_token(value, fallback: str = "item") -> str:
    """Create filesystem-safe token for filenames."""
    token = re.sub(r"[^A-Za-z0-9._-]+", "_", str(value)).strip("._-")
    return token or fallback


def _safe_unlink(path: str):
    """Best-effort file deletion after response is sent."""
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not delete report file %s: %s", path, e)


@router.post("/class-excel")
async def class_results_excel(payload: dict):
    """Export the ranked class result sheet as an Excel workbook."""
    summary = class_summary_from_payload(payload)
    report_id = str(uuid.uuid4())[:8]
    class_token = _safe_token(summary.get("class_id"), fallback="class")
    output_path = REPORTS_DIR / f"class_results_{class_token}_{report_id}.xlsx"

    generate_class_results_excel(
        output_path=str(output_path),
        summary=summary,
        school_name=_school_name(payload),
    )

    return FileResponse(
        str(output_path),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        filename=f"Class_Results_{class_token}_{report_id}.xlsx",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )


@router.post("/class-pdf")
async def class_report_pdf(payload: dict):
    """Generate the class result report PDF."""
    summary = class_summary_from_payload(payload)
    report_id = str(uuid.uuid4())[:8]
    class_token = _safe_token(summary.get("class_id"), fallback="class")
    output_path = REPORTS_DIR / f"class_report_{class_token}_{report_id}.pdf"

    generate_class_report_pdf(
        output_path=str(output_path),
        school_name=_school_name(payload),
        summary=summary,
        exam_name=payload.get("exam_name"),
    )

    return FileResponse(
        str(output_path),
        media_type="application/pdf",
        filename=f"Class_Report_{class_token}_{report_id}.pdf",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )


@router.post("/student-pdf")
async def student_report_pdf(payload: dict):
    """Generate an individual student result report PDF."""
    student_id = payload.get("student_id")
    if student_id is None:
        raise HTTPException(400, "Provide 'student_id'.")

    summary = class_summary_from_payload(payload)
    aggregate = find_student(summary, student_id)
    if aggregate is None:
        raise HTTPException(404, f"Student '{student_id}' not found.")

    report_id = str(uuid.uuid4())[:8]
    student_token = _safe_token(student_id, fallback="student")
    output_path = REPORTS_DIR / f"student_report_{student_token}_{report_id}.pdf"

    generate_student_report_pdf(
        output_path=str(output_path),
        school_name=_school_name(payload),
        aggregate=aggregate,
        total_students=summary["total_students"],
        exam_name=payload.get("exam_name"),
    )

    return FileResponse(
        str(output_path),
        media_type="application/pdf",
        filename=f"Student_Report_{student_token}_{report_id}.pdf",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )
