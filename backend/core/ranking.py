"""
ranking.py — Class rankings and subject positions.

Ties use competition ranking (pandas method="min"): equal values share a
rank and the next distinct value takes its 1-based position, so averages
[90, 80, 80, 70] rank [1, 2, 2, 4].
"""

import logging
import math
import numbers
from typing import Any, Dict, List, Optional

import pandas as pd

from core.errors import log_degraded

logger = logging.getLogger(__name__)

# metric -> ascending. Points are inverted-quality, so fewer points rank higher.
RANK_METRICS = {
    "average_marks": False,
    "total_points": True,
}

_METRIC_ALIASES = {
    "averagemarks": "average_marks",
    "average": "average_marks",
    "totalpoints": "total_points",
    "points": "total_points",
}


def parse_metric(metric: str) -> str:
    key = str(metric).strip()
    if key in RANK_METRICS:
        return key
    normalized = _METRIC_ALIASES.get(key.lower().replace("_", ""))
    if normalized is None:
        raise ValueError(f"Unknown ranking metric {metric!r}: expected one of {sorted(RANK_METRICS)}.")
    return normalized


def _metric_value(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return None
    try:
        value = float(value)
    except OverflowError:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    # Averages are reported to 2 decimals; rank on what is reported.
    return round(value, 2)


def competition_ranks(values: List[float], ascending: bool) -> List[int]:
    """1-based competition ranks for a list of numbers."""
    if not values:
        return []
    ranks = pd.Series(values, dtype="float64").rank(method="min", ascending=ascending)
    return [int(r) for r in ranks]


# ── Students ────────────────────────────────────────────────────────

def rank_students(
    aggregates: List[Dict[str, Any]],
    metric: str = "average_marks",
    log: Optional[logging.Logger] = None,
) -> List[Dict[str, Any]]:
    """
    Assign class ranks to student aggregates.

    Returns new dicts ordered by rank (ties keep input order). Students with
    no subject results or no usable metric value get rank None and follow the
    ranked students.
    """
    log = log or logger
    metric = parse_metric(metric)

    rankable, unranked = [], []
    for aggregate in aggregates:
        value = _metric_value(aggregate.get(metric))
        if not aggregate.get("subject_results") or value is None:
            log_degraded(log, "student %r has no %s; rank omitted", aggregate.get("student_id"), metric)
            unranked.append(dict(aggregate, rank=None))
            continue
        rankable.append((aggregate, value))

    ranks = competition_ranks([value for _, value in rankable], ascending=RANK_METRICS[metric])
    ranked = [dict(aggregate, rank=rank) for (aggregate, _), rank in zip(rankable, ranks)]
    ranked.sort(key=lambda a: a["rank"])
    return ranked + unranked


# ── Subjects ────────────────────────────────────────────────────────

def subject_positions(results: List[Dict[str, Any]], log: Optional[logging.Logger] = None) -> List[Dict[str, Any]]:
    """
    Assign subject_position to one subject's results across a class.

    Ranked by points ascending (best grade first) with competition ties.
    Results keep their input order; those without points get None.
    """
    log = log or logger
    values, positions_at = [], []
    for idx, result in enumerate(results):
        value = _metric_value(result.get("points"))
        if value is None:
            log_degraded(log, "result for student %r has no points; subject position omitted", result.get("student_id"))
            continue
        values.append(value)
        positions_at.append(idx)

    positioned = [dict(result, subject_position=None) for result in results]
    for idx, rank in zip(positions_at, competition_ranks(values, ascending=True)):
        positioned[idx]["subject_position"] = rank
    return positioned
