"""
report_builder.py — PDF and Excel result reports.

Generates:
- Class Results Excel (ranked result sheet, subject performance, divisions)
- Student Report PDF  (subject results, summary, principal/subsidiary listing)
- Class Report PDF    (summary, division chart, ranked students, subject table)

All inputs are the plain dicts produced by core.results; nothing is
recomputed here. Missing values print as "-".
"""

import io
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for server use
import matplotlib.pyplot as plt
import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils.dataframe import dataframe_to_rows
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm, mm
from reportlab.platypus import (
    Image,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from core.divisions import DIVISIONS, describe_division_scale
from core.grading import Curriculum, grades_for, parse_curriculum


# ── Colour palette ──────────────────────────────────────────────────

BRAND_DARK  = colors.HexColor("#1a1a2e")
BRAND_ACCENT = colors.HexColor("#0f3460")
LIGHT_GREY  = colors.HexColor("#f5f5f5")
WHITE       = colors.white

MPL_PALETTE = ["#2ecc71", "#0f3460", "#f39c12", "#e94560", "#9b59b6"]

# Row shading by division: I/II green, III amber, IV/0 red.
DIVISION_FILLS = {
    "I": "d5f5e3", "II": "d5f5e3",
    "III": "fef9e7",
    "IV": "fadbd8", "0": "fadbd8",
}

MISSING = "-"


# ── Helpers ─────────────────────────────────────────────────────────

def _display(value: Any) -> str:
    if value is None:
        return MISSING
    if isinstance(value, float):
        if value != value:
            return MISSING
        return f"{value:g}" if value.is_integer() else f"{value:.2f}"
    text = str(value).strip()
    return text or MISSING


def _student_label(aggregate: Dict[str, Any]) -> str:
    return str(aggregate.get("student_name") or aggregate.get("student_id") or MISSING)


def _subject_ids(summary: Dict[str, Any]) -> List[str]:
    """Subjects in first-seen order across the class."""
    seen: List[str] = []
    for aggregate in summary.get("students", []):
        for result in aggregate.get("subject_results", []):
            sid = str(result.get("subject_id"))
            if sid not in seen:
                seen.append(sid)
    return seen


def split_principal_subjects(aggregate: Dict[str, Any]) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Split an A-Level student's results into (principal, subsidiary) lists.

    A subject is principal when flagged so or when it was counted among the
    best three (a promoted subsidiary). Everything else is subsidiary.
    """
    best_ids = {str(r.get("subject_id")) for r in aggregate.get("best_subjects", [])}
    principals, subsidiaries = [], []
    for result in aggregate.get("subject_results", []):
        if result.get("is_principal") is True or str(result.get("subject_id")) in best_ids:
            principals.append(result)
        else:
            subsidiaries.append(result)
    return principals, subsidiaries


def _footer(canvas, doc, school_name: str):
    """Draw school name and date in the page footer."""
    canvas.saveState()
    canvas.setFont("Helvetica", 8)
    canvas.setFillColor(colors.grey)
    footer_text = f"{school_name} — Generated {datetime.now().strftime('%d %B %Y, %H:%M')}"
    canvas.drawString(2 * cm, 1.2 * cm, footer_text)
    canvas.drawRightString(doc.pagesize[0] - 2 * cm, 1.2 * cm, f"Page {doc.page}")
    canvas.restoreState()


def _chart_to_image(fig, width=14 * cm, height=8 * cm) -> Image:
    """Convert a matplotlib figure to a ReportLab Image."""
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=150, bbox_inches="tight")
    plt.close(fig)
    buf.seek(0)
    return Image(buf, width=width, height=height)


def _division_chart(distribution: Dict[str, int]) -> Image:
    """Bar chart of students per division."""
    labels = list(DIVISIONS)
    counts = [int(distribution.get(d, 0)) for d in labels]
    fig, ax = plt.subplots(figsize=(7, 3.5))
    bars = ax.bar([f"Div {d}" for d in labels], counts, color=MPL_PALETTE)
    for bar, count in zip(bars, counts):
        ax.annotate(str(count), (bar.get_x() + bar.get_width() / 2, bar.get_height()),
                    ha="center", va="bottom", fontsize=9)
    ax.set_ylabel("Students")
    ax.set_title("Division Distribution")
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    return _chart_to_image(fig)


# ── PDF Helpers ─────────────────────────────────────────────────────

def _styles():
    """Return custom paragraph styles."""
    ss = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "CustomTitle", parent=ss["Title"],
            fontSize=20, leading=24, textColor=BRAND_DARK,
            spaceAfter=3 * mm,
        ),
        "subtitle": ParagraphStyle(
            "CustomSubtitle", parent=ss["Normal"],
            fontSize=13, leading=17, textColor=BRAND_ACCENT,
            alignment=TA_CENTER, spaceAfter=4 * mm,
        ),
        "heading": ParagraphStyle(
            "CustomHeading", parent=ss["Heading2"],
            fontSize=13, leading=17, textColor=BRAND_DARK,
            spaceBefore=6 * mm, spaceAfter=3 * mm,
        ),
        "body": ParagraphStyle(
            "CustomBody", parent=ss["Normal"],
            fontSize=10, leading=14, textColor=colors.black,
            spaceAfter=2 * mm,
        ),
        "small": ParagraphStyle(
            "CustomSmall", parent=ss["Normal"],
            fontSize=8, leading=10, textColor=colors.grey,
        ),
    }


def _make_table(data: List[List], col_widths=None, header_color=BRAND_DARK):
    """Create a styled table."""
    style_cmds = [
        ("BACKGROUND", (0, 0), (-1, 0), header_color),
        ("TEXTCOLOR", (0, 0), (-1, 0), WHITE),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 9),
        ("FONTSIZE", (0, 1), (-1, -1), 8),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cccccc")),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [WHITE, LIGHT_GREY]),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]
    t = Table(data, colWidths=col_widths, repeatRows=1)
    t.setStyle(TableStyle(style_cmds))
    return t


def _division_coded_table(data: List[List], division_col_idx: int, col_widths=None):
    """Table with per-row colour coding based on the division column."""
    t = _make_table(data, col_widths=col_widths)
    style_cmds = []
    for row_idx in range(1, len(data)):
        fill = DIVISION_FILLS.get(str(data[row_idx][division_col_idx]))
        if fill:
            style_cmds.append(("BACKGROUND", (0, row_idx), (-1, row_idx), colors.HexColor(f"#{fill}")))
    t.setStyle(TableStyle(style_cmds))
    return t


# ═══════════════════════════════════════════════════════════════════
# 1. STUDENT REPORT PDF
# ═══════════════════════════════════════════════════════════════════

def generate_student_report_pdf(
    output_path: str,
    school_name: str,
    aggregate: Dict[str, Any],
    total_students: Optional[int] = None,
    exam_name: Optional[str] = None,
):
    """Generate a one-page student result report."""
    st = _styles()
    story = []
    curriculum = parse_curriculum(aggregate.get("curriculum"))
    is_a_level = curriculum is Curriculum.A_LEVEL

    story.append(Paragraph(school_name, st["title"]))
    story.append(Paragraph(f"{curriculum.label.upper()} STUDENT RESULT REPORT", st["subtitle"]))
    story.append(Paragraph(datetime.now().strftime("%d %B %Y"), st["small"]))
    story.append(Spacer(1, 4 * mm))

    rank = aggregate.get("rank")
    rank_text = f"{_display(rank)} of {_display(total_students)}" if rank is not None else MISSING
    identity = [
        ["Student", _student_label(aggregate), "Student ID", _display(aggregate.get("student_id"))],
        ["Exam", _display(exam_name), "Rank", rank_text],
    ]
    identity_table = Table(identity, colWidths=[3 * cm, 5.5 * cm, 3 * cm, 5.5 * cm])
    identity_table.setStyle(TableStyle([
        ("GRID", (0, 0), (-1, -1), 0.6, colors.HexColor("#d1d5db")),
        ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor("#f8fafc")),
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTNAME", (2, 0), (2, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("TOPPADDING", (0, 0), (-1, -1), 5),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
    ]))
    story.append(identity_table)

    # Subject results
    story.append(Paragraph("Subject Results", st["heading"]))
    best_ids = {str(r.get("subject_id")) for r in aggregate.get("best_subjects", [])}
    header = ["Subject", "Marks", "Grade", "Points", "Remarks", "Position"]
    rows = [header]
    for result in aggregate.get("subject_results", []):
        sid = str(result.get("subject_id"))
        name = str(result.get("subject_name") or sid)
        if is_a_level:
            name += " (P)" if sid in best_ids or result.get("is_principal") else " (S)"
        elif sid in best_ids:
            name += " *"
        rows.append([
            name,
            _display(result.get("marks_obtained")),
            _display(result.get("grade")),
            _display(result.get("points")),
            _display(result.get("remarks")),
            _display(result.get("subject_position")),
        ])
    if len(rows) == 1:
        rows.append(["No results entered", MISSING, MISSING, MISSING, MISSING, MISSING])
    story.append(_make_table(rows, col_widths=[5 * cm, 2 * cm, 2 * cm, 2 * cm, 3.5 * cm, 2.5 * cm]))

    # Summary
    story.append(Paragraph("Summary", st["heading"]))
    points_label = "Best 3 Principal Points" if is_a_level else "Best 7 Points"
    summary_rows = [
        ["Total Marks", "Average Marks", points_label, "Division"],
        [
            _display(aggregate.get("total_marks")),
            _display(aggregate.get("average_marks")),
            _display(aggregate.get("total_points")),
            f"Division {_display(aggregate.get('division'))}",
        ],
    ]
    story.append(_make_table(summary_rows, col_widths=[4.25 * cm] * 4, header_color=BRAND_ACCENT))

    if is_a_level:
        principals, subsidiaries = split_principal_subjects(aggregate)
        story.append(Paragraph("Principal Subjects", st["heading"]))
        story.append(Paragraph(
            ", ".join(f"{r.get('subject_name') or r.get('subject_id')}: {r.get('grade')} ({r.get('points')})" for r in principals) or "None",
            st["body"],
        ))
        story.append(Paragraph("Subsidiary Subjects", st["heading"]))
        story.append(Paragraph(
            ", ".join(f"{r.get('subject_name') or r.get('subject_id')}: {r.get('grade')} ({r.get('points')})" for r in subsidiaries) or "None",
            st["body"],
        ))
        if aggregate.get("promoted_subjects"):
            story.append(Paragraph(
                "Note: fewer than three principal subjects were registered; "
                f"{', '.join(str(s) for s in aggregate['promoted_subjects'])} counted as principal.",
                st["small"],
            ))
    else:
        story.append(Paragraph("* counted among the best seven subjects.", st["small"]))

    story.append(Spacer(1, 6 * mm))
    story.append(Paragraph(f"Division key: {describe_division_scale(curriculum)}.", st["small"]))

    doc = SimpleDocTemplate(output_path, pagesize=A4, topMargin=1.5 * cm, bottomMargin=2 * cm)
    doc.build(
        story,
        onFirstPage=lambda c, d: _footer(c, d, school_name),
        onLaterPages=lambda c, d: _footer(c, d, school_name),
    )


# ═══════════════════════════════════════════════════════════════════
# 2. CLASS REPORT PDF
# ═══════════════════════════════════════════════════════════════════

def generate_class_report_pdf(
    output_path: str,
    school_name: str,
    summary: Dict[str, Any],
    exam_name: Optional[str] = None,
):
    """Generate a class result report: summary, division chart, ranked students, subjects."""
    st = _styles()
    story = []
    curriculum = parse_curriculum(summary.get("curriculum"))

    story.append(Paragraph(school_name, st["title"]))
    story.append(Paragraph(
        f"{curriculum.label.upper()} CLASS RESULT REPORT — {_display(summary.get('class_id'))}",
        st["subtitle"],
    ))
    story.append(Paragraph(
        f"Exam: {_display(exam_name or summary.get('exam_id'))} · {datetime.now().strftime('%d %B %Y')}",
        st["small"],
    ))

    stats = summary.get("statistics", {})
    story.append(Paragraph("Class Summary", st["heading"]))
    story.append(_make_table([
        ["Students", "Class Average", "Median", "Std Dev", "Ranked By"],
        [
            _display(summary.get("total_students")),
            _display(summary.get("class_average")),
            _display(stats.get("median")),
            _display(stats.get("standard_deviation")),
            str(summary.get("rank_by", MISSING)).replace("_", " ").title(),
        ],
    ]))

    distribution = summary.get("division_distribution", {})
    story.append(Paragraph("Division Distribution", st["heading"]))
    story.append(_make_table(
        [[f"Div {d}" for d in DIVISIONS], [str(distribution.get(d, 0)) for d in DIVISIONS]],
        header_color=BRAND_ACCENT,
    ))
    story.append(Spacer(1, 3 * mm))
    story.append(_division_chart(distribution))

    story.append(Paragraph("Student Results", st["heading"]))
    rows = [["Rank", "Student", "Total", "Average", "Points", "Division"]]
    for aggregate in summary.get("students", []):
        rows.append([
            _display(aggregate.get("rank")),
            _student_label(aggregate),
            _display(aggregate.get("total_marks")),
            _display(aggregate.get("average_marks")),
            _display(aggregate.get("total_points")),
            _display(aggregate.get("division")),
        ])
    story.append(_division_coded_table(rows, division_col_idx=5,
                                       col_widths=[1.5 * cm, 6 * cm, 2.2 * cm, 2.2 * cm, 2 * cm, 2 * cm]))

    grades = grades_for(curriculum)
    story.append(Paragraph("Subject Performance", st["heading"]))
    subject_rows = [["Subject", "Sat"] + grades + ["Passed", "GPA"]]
    for sid, perf in summary.get("subject_performance", {}).items():
        counts = perf.get("grade_counts", {})
        subject_rows.append(
            [str(perf.get("subject_name") or sid), _display(perf.get("registered"))]
            + [str(counts.get(g, 0)) for g in grades]
            + [_display(perf.get("passed")), _display(perf.get("gpa"))]
        )
    story.append(_make_table(subject_rows))

    story.append(Spacer(1, 6 * mm))
    story.append(Paragraph(f"Division key: {describe_division_scale(curriculum)}.", st["small"]))

    doc = SimpleDocTemplate(output_path, pagesize=A4, topMargin=1.5 * cm, bottomMargin=2 * cm)
    doc.build(
        story,
        onFirstPage=lambda c, d: _footer(c, d, school_name),
        onLaterPages=lambda c, d: _footer(c, d, school_name),
    )


# ═══════════════════════════════════════════════════════════════════
# 3. CLASS RESULTS EXCEL
# ═══════════════════════════════════════════════════════════════════

def class_results_frame(summary: Dict[str, Any]) -> pd.DataFrame:
    """One row per student: rank, identity, 'marks (grade)' per subject, totals, division."""
    subjects = _subject_ids(summary)
    rows = []
    for aggregate in summary.get("students", []):
        by_subject = {str(r.get("subject_id")): r for r in aggregate.get("subject_results", [])}
        row = {
            "Rank": aggregate.get("rank") if aggregate.get("rank") is not None else MISSING,
            "Student ID": str(aggregate.get("student_id")),
            "Name": _student_label(aggregate),
        }
        for sid in subjects:
            result = by_subject.get(sid)
            row[sid] = f"{_display(result.get('marks_obtained'))} ({result.get('grade')})" if result else MISSING
        row["Total Marks"] = aggregate.get("total_marks")
        row["Average"] = aggregate.get("average_marks")
        row["Points"] = aggregate.get("total_points")
        row["Division"] = aggregate.get("division")
        rows.append(row)
    return pd.DataFrame(rows)


def generate_class_results_excel(
    output_path: str,
    summary: Dict[str, Any],
    school_name: str,
):
    """Export a class summary to Excel: result sheet, subject performance, divisions."""
    curriculum = parse_curriculum(summary.get("curriculum"))
    results_df = class_results_frame(summary)

    grades = grades_for(curriculum)
    perf_rows = []
    for sid, perf in summary.get("subject_performance", {}).items():
        row = {"Subject": perf.get("subject_name") or sid, "Sat": perf.get("registered")}
        row.update({g: perf.get("grade_counts", {}).get(g, 0) for g in grades})
        row.update({
            "Passed": perf.get("passed"),
            "GPA": perf.get("gpa"),
            "Mean Marks": perf.get("statistics", {}).get("mean"),
        })
        perf_rows.append(row)
    perf_df = pd.DataFrame(perf_rows)

    distribution = summary.get("division_distribution", {})
    div_df = pd.DataFrame([{"Division": d, "Students": distribution.get(d, 0)} for d in DIVISIONS])

    # Styling definitions
    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="1a1a2e", end_color="1a1a2e", fill_type="solid")
    thin_border = Border(
        left=Side(style="thin"), right=Side(style="thin"),
        top=Side(style="thin"), bottom=Side(style="thin"),
    )

    def _style_sheet(ws, dataframe, title_rows: int = 0):
        """Apply formatting to a worksheet."""
        header_row = title_rows + 1
        for cell in ws[header_row]:
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center")
            cell.border = thin_border

        div_col_idx = None
        for idx, col_name in enumerate(dataframe.columns, 1):
            if col_name == "Division":
                div_col_idx = idx
                break

        for row in ws.iter_rows(min_row=header_row + 1, max_row=ws.max_row):
            for cell in row:
                cell.border = thin_border
                cell.alignment = Alignment(horizontal="center")
            if div_col_idx:
                fill = DIVISION_FILLS.get(str(row[div_col_idx - 1].value))
                if fill:
                    for cell in row:
                        cell.fill = PatternFill(start_color=fill, end_color=fill, fill_type="solid")

        ws.freeze_panes = ws.cell(row=header_row + 1, column=1)

        for col_cells in ws.iter_cols(min_row=header_row):
            max_len = max(len(str(cell.value or "")) for cell in col_cells)
            ws.column_dimensions[col_cells[0].column_letter].width = min(max_len + 4, 30)

    wb = Workbook()

    # ── Sheet 1: Class Results ──────────────────────────────────────
    ws_results = wb.active
    ws_results.title = "Class Results"
    ws_results.sheet_properties.tabColor = "1a1a2e"
    ws_results.append([
        f"{school_name} — {curriculum.label} results, class {_display(summary.get('class_id'))}, "
        f"exam {_display(summary.get('exam_id'))}"
    ])
    ws_results["A1"].font = Font(bold=True, size=13)
    for row in dataframe_to_rows(results_df, index=False, header=True):
        ws_results.append(row)
    _style_sheet(ws_results, results_df, title_rows=1)

    # ── Sheet 2: Subject Performance ────────────────────────────────
    ws_perf = wb.create_sheet(title="Subject Performance")
    ws_perf.sheet_properties.tabColor = "0f3460"
    for row in dataframe_to_rows(perf_df, index=False, header=True):
        ws_perf.append(row)
    _style_sheet(ws_perf, perf_df)

    # ── Sheet 3: Divisions ──────────────────────────────────────────
    ws_div = wb.create_sheet(title="Divisions")
    ws_div.sheet_properties.tabColor = "2ecc71"
    for row in dataframe_to_rows(div_df, index=False, header=True):
        ws_div.append(row)
    _style_sheet(ws_div, div_df)

    wb.save(output_path)
