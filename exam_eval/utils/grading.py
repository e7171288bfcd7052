"""Percentage and letter grade helpers shared by the score models."""

import math
from typing import Any, Tuple

from exam_eval.utils.normalizers import to_number

# Lower bound (inclusive) of each letter grade, best first
GRADE_THRESHOLDS: Tuple[Tuple[int, str], ...] = (
    (90, "A+"),
    (85, "A"),
    (80, "A-"),
    (75, "B+"),
    (70, "B"),
    (65, "B-"),
    (60, "C+"),
    (55, "C"),
    (50, "C-"),
)
FAILING_GRADE = "F"


def percentage(obtained: Any, total: Any) -> int:
    """Whole-number percentage, rounded half up and clamped to [0, 100].

    A non-positive total gives 0.
    """
    obtained = to_number(obtained)
    total = to_number(total)
    if total <= 0:
        return 0
    raw = obtained / total * 100
    if not math.isfinite(raw):
        return 100 if raw > 0 else 0
    return max(0, min(100, math.floor(raw + 0.5)))


def letter_grade(percent: float) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if percent >= threshold:
            return grade
    return FAILING_GRADE
