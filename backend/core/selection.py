"""
selection.py — Best-subject selection for division computation.

O-Level: best seven subjects by points.
A-Level: best three principal subjects by points. When a student has fewer
than three principal subjects the best remaining subjects are promoted to
principal so a division can still be computed; each promotion is logged
because it departs from the official rule.

Lower points are better. Sorting is stable, so subjects with equal points
keep their input order and repeated runs select the same subjects.
"""

import logging
import math
import numbers
from typing import Any, Dict, Iterable, List, Optional

from core.divisions import NO_DIVISION, classify
from core.errors import log_degraded
from core.grading import Curriculum, parse_curriculum

logger = logging.getLogger(__name__)

BEST_SUBJECT_COUNT = {
    Curriculum.O_LEVEL: 7,
    Curriculum.A_LEVEL: 3,
}


# ── Helpers ─────────────────────────────────────────────────────────

def _points_of(result: Dict[str, Any]) -> Optional[float]:
    """Return a result's points, or None when missing or non-numeric."""
    points = result.get("points")
    if isinstance(points, bool) or not isinstance(points, numbers.Real):
        return None
    try:
        if math.isnan(float(points)):
            return None
    except OverflowError:
        return None
    return points


def _usable_results(results: Iterable[Dict[str, Any]], log: logging.Logger, warnings: List[str]) -> List[Dict[str, Any]]:
    usable = []
    for result in results or []:
        if _points_of(result) is None:
            message = f"subject {result.get('subject_id')!r} has no usable points and is left out of selection"
            log_degraded(log, message)
            warnings.append(message)
            continue
        usable.append(result)
    return usable


def _by_points(results: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(results, key=_points_of)


def _summarize(selected: List[Dict[str, Any]], curriculum: Curriculum, log: logging.Logger, warnings: List[str]) -> Dict[str, Any]:
    if not selected:
        message = f"no gradable subjects for {curriculum.label} selection; division defaults to {NO_DIVISION}"
        log_degraded(log, message)
        warnings.append(message)
        return {"selected": [], "total_points": 0, "division": NO_DIVISION}

    total_points = sum(_points_of(r) for r in selected)
    if float(total_points).is_integer():
        total_points = int(total_points)
    return {
        "selected": selected,
        "total_points": total_points,
        "division": classify(total_points, curriculum, log=log),
    }


# ── Selectors ───────────────────────────────────────────────────────

def select_best_seven(results: List[Dict[str, Any]], log: Optional[logging.Logger] = None) -> Dict[str, Any]:
    """
    Select the best seven O-Level subjects.

    Returns {'selected', 'total_points', 'division', 'warnings'}. Never raises
    on incomplete data: no subjects gives an empty selection and Division 0.
    """
    log = log or logger
    warnings: List[str] = []
    usable = _usable_results(results, log, warnings)
    count = BEST_SUBJECT_COUNT[Curriculum.O_LEVEL]
    selected = [dict(r) for r in _by_points(usable)[:count]]

    summary = _summarize(selected, Curriculum.O_LEVEL, log, warnings)
    summary["warnings"] = warnings
    return summary


def select_best_three_principal(
    results: List[Dict[str, Any]],
    principal_subject_ids: Optional[Iterable[Any]] = None,
    log: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    """
    Select the best three A-Level principal subjects.

    Principal subjects are those flagged is_principal, or, when
    principal_subject_ids is given, those whose subject_id is in it.
    Returns {'selected', 'total_points', 'division', 'promoted', 'warnings'},
    where 'promoted' lists subject ids force-promoted to principal.
    """
    log = log or logger
    warnings: List[str] = []
    usable = _usable_results(results, log, warnings)
    count = BEST_SUBJECT_COUNT[Curriculum.A_LEVEL]

    # Ids may arrive as strings from JSON while subject_id is an int, or vice versa
    principal_ids = {str(s) for s in principal_subject_ids} if principal_subject_ids is not None else None

    def _is_principal(result: Dict[str, Any]) -> bool:
        if principal_ids is not None:
            return str(result.get("subject_id")) in principal_ids
        return result.get("is_principal") is True

    principals = [dict(r, is_principal=True) for r in usable if _is_principal(r)]
    others = [r for r in usable if not _is_principal(r)]

    promoted: List[Any] = []
    shortfall = count - len(principals)
    if shortfall > 0 and others:
        for result in _by_points(others)[:shortfall]:
            principals.append(dict(result, is_principal=True))
            promoted.append(result.get("subject_id"))
            message = (
                f"only {count - shortfall} principal subject(s); promoting {result.get('subject_id')!r} "
                f"(points {result.get('points')}) to principal"
            )
            log_degraded(log, message)
            warnings.append(message)

    selected = _by_points(principals)[:count]

    summary = _summarize(selected, Curriculum.A_LEVEL, log, warnings)
    summary["promoted"] = promoted
    summary["warnings"] = warnings
    return summary


_SELECTORS = {
    Curriculum.O_LEVEL: lambda results, principal_ids, log: select_best_seven(results, log=log),
    Curriculum.A_LEVEL: lambda results, principal_ids, log: select_best_three_principal(results, principal_ids, log=log),
}


def select_best_subjects(
    results: List[Dict[str, Any]],
    curriculum,
    principal_subject_ids: Optional[Iterable[Any]] = None,
    log: Optional[logging.Logger] = None,
) -> Dict[str, Any]:
    """Run the best-subject selector of the given curriculum."""
    selector = _SELECTORS[parse_curriculum(curriculum)]
    summary = selector(results, principal_subject_ids, log)
    summary.setdefault("promoted", [])
    return summary
