"""
stats.py — Class-level statistics over graded results.

Computes:
- Population mean / median / mode / standard deviation of marks
- Grade distributions (per student, per subject, per class)
- Division distributions
- Per-subject performance: registered, grade counts, passed, GPA

GPA follows the points convention: it is the mean points of the students who
sat the subject, so lower is better.
"""

import math
import numbers
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd
from scipy import stats as sp_stats

from core.divisions import DIVISIONS, NO_DIVISION
from core.grading import FAIL_GRADE, grades_for


# ── Helpers ─────────────────────────────────────────────────────────

def _safe_float(val) -> Optional[float]:
    """Convert to float or return None."""
    try:
        v = float(val)
        return None if np.isnan(v) or np.isinf(v) else round(v, 2)
    except (TypeError, ValueError):
        return None


def _sanitize(obj):
    """Recursively coerce numpy/pandas scalars to JSON-safe Python types."""
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize(v) for v in obj]
    if isinstance(obj, (np.bool_,)):
        return bool(obj)
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating, float)):
        v = float(obj)
        return None if (np.isnan(v) or np.isinf(v)) else v
    return obj


def _numeric(values: Iterable[Any]) -> List[float]:
    """Keep finite real numbers, dropping None, NaN, booleans and strings."""
    kept = []
    for v in values:
        if isinstance(v, bool) or not isinstance(v, numbers.Real):
            continue
        try:
            v = float(v)
        except OverflowError:
            continue
        if math.isnan(v) or math.isinf(v):
            continue
        kept.append(v)
    return kept


# ── Marks Statistics ────────────────────────────────────────────────

def class_statistics(marks: Iterable[Any]) -> Dict[str, float]:
    """
    Population statistics over a list of marks.

    The mode is the smallest of the most frequent values. Empty input gives
    all zeros.
    """
    values = _numeric(marks)
    if not values:
        return {"mean": 0.0, "median": 0.0, "mode": 0.0, "standard_deviation": 0.0}

    arr = np.asarray(values, dtype=float)
    return _sanitize({
        "mean": _safe_float(arr.mean()),
        "median": _safe_float(np.median(arr)),
        "mode": _safe_float(sp_stats.mode(arr, keepdims=False).mode),
        "standard_deviation": _safe_float(arr.std(ddof=0)),
    })


# ── Distributions ───────────────────────────────────────────────────

def grade_distribution(results: Iterable[Dict[str, Any]], curriculum=None) -> Dict[str, int]:
    """
    Count results per grade.

    With a curriculum every grade of its scale is listed (zero-filled) and
    grades outside the scale are ignored.
    """
    if curriculum is not None:
        counts = {grade: 0 for grade in grades_for(curriculum)}
        for result in results:
            grade = result.get("grade")
            if grade in counts:
                counts[grade] += 1
        return counts

    counts: Dict[str, int] = {}
    for result in results:
        grade = result.get("grade")
        if grade:
            counts[grade] = counts.get(grade, 0) + 1
    return counts


def division_distribution(aggregates: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    """Count students per division; missing divisions count as Division 0."""
    counts = {division: 0 for division in DIVISIONS}
    for aggregate in aggregates:
        division = str(aggregate.get("division") or NO_DIVISION).replace("Division ", "").strip()
        counts[division if division in counts else NO_DIVISION] += 1
    return counts


# ── Subject Performance ─────────────────────────────────────────────

def subject_performance(aggregates: Iterable[Dict[str, Any]], curriculum) -> Dict[str, Dict[str, Any]]:
    """Per-subject registered count, grade counts, passes, GPA and marks statistics."""
    rows = []
    for aggregate in aggregates:
        for result in aggregate.get("subject_results") or []:
            rows.append({
                "subject_id": str(result.get("subject_id")),
                "subject_name": result.get("subject_name"),
                "grade": result.get("grade"),
                "points": result.get("points"),
                "marks_obtained": result.get("marks_obtained"),
            })
    if not rows:
        return {}

    df = pd.DataFrame(rows)
    df["points"] = pd.to_numeric(df["points"], errors="coerce")

    performance: Dict[str, Dict[str, Any]] = {}
    for subject_id, group in df.groupby("subject_id", sort=False):
        records = group.to_dict(orient="records")
        names = group["subject_name"].dropna()
        performance[str(subject_id)] = {
            "subject_name": str(names.iloc[0]) if not names.empty else str(subject_id),
            "registered": len(group),
            "grade_counts": grade_distribution(records, curriculum),
            "passed": int((group["grade"].notna() & (group["grade"] != FAIL_GRADE)).sum()),
            "gpa": _safe_float(group["points"].mean()),
            "statistics": class_statistics(group["marks_obtained"].tolist()),
        }

    return _sanitize(performance)
