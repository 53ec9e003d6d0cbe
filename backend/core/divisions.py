"""
divisions.py — Division classification from best-subject points.

O-Level divisions come from the sum of the best seven subjects' points,
A-Level divisions from the best three principal subjects. Anything outside
the bands, or points that are not a number, is Division 0.
"""

import logging
import math
import numbers
from typing import Any, Dict, List, Optional

from core.errors import log_degraded
from core.grading import Curriculum, parse_curriculum

logger = logging.getLogger(__name__)

NO_DIVISION = "0"
DIVISIONS = ["I", "II", "III", "IV", NO_DIVISION]

# (min_points, max_points, division), inclusive on both ends.
DIVISION_BANDS = {
    Curriculum.O_LEVEL: [
        (7, 17, "I"),
        (18, 21, "II"),
        (22, 25, "III"),
        (26, 33, "IV"),
    ],
    Curriculum.A_LEVEL: [
        (3, 9, "I"),
        (10, 12, "II"),
        (13, 17, "III"),
        (18, 19, "IV"),
    ],
}


def classify(points: Any, curriculum, log: Optional[logging.Logger] = None) -> str:
    """Return the division label for a best-subject points total."""
    log = log or logger
    curriculum = parse_curriculum(curriculum)

    if isinstance(points, bool) or not isinstance(points, numbers.Real):
        log_degraded(log, "points %r are not a number; %s division defaults to 0", points, curriculum.label)
        return NO_DIVISION
    try:
        unusable = math.isnan(float(points))
    except OverflowError:
        unusable = True
    if unusable:
        log_degraded(log, "points %r are not a usable number; %s division defaults to 0", points, curriculum.label)
        return NO_DIVISION

    for low, high, division in DIVISION_BANDS[curriculum]:
        if low <= points <= high:
            return division
    return NO_DIVISION


def get_division_scale(curriculum) -> List[Dict[str, Any]]:
    """Division bands of a curriculum for legends and reference."""
    return [
        {"division": division, "min_points": low, "max_points": high}
        for low, high, division in DIVISION_BANDS[parse_curriculum(curriculum)]
    ]


def describe_division_scale(curriculum) -> str:
    """One-line division key, e.g. for report footers."""
    parts = [
        f"Division {band['division']}: {band['min_points']}-{band['max_points']} points"
        for band in get_division_scale(curriculum)
    ]
    return ", ".join(parts)
