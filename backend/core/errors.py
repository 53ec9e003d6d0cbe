"""
errors.py — Exceptions and degraded-input reporting for the results engine.

Validation problems (bad marks, unknown curriculum) raise and propagate to the
caller. Aggregation anomalies never raise: they are logged under the
DegradedInputWarning category and the engine substitutes a safe default.
"""

import logging
from typing import Optional


class InvalidMarksError(ValueError):
    """Marks are missing, non-numeric, or outside 0-100."""

    def __init__(self, marks, message: Optional[str] = None):
        self.marks = marks
        super().__init__(message or f"Invalid marks {marks!r}: expected a number between 0 and 100.")


class UnknownCurriculumError(ValueError):
    """Curriculum tag is neither O-Level nor A-Level."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Unknown curriculum {value!r}: expected O_LEVEL or A_LEVEL.")


class DegradedInputWarning(UserWarning):
    """Incomplete input that the engine papered over with a default."""


def log_degraded(logger: logging.Logger, message: str, *args) -> None:
    """Log a non-fatal input anomaly under the DegradedInputWarning category."""
    logger.warning(f"{DegradedInputWarning.__name__}: {message}", *args)
