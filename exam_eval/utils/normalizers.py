"""Normalize marks annotations, answer letters and oracle score values."""

import math
import re
from typing import Any, Optional

MARKS_PATTERN = re.compile(r"\((\d+)\s*marks?\)", re.IGNORECASE)

DIGIT_TO_LETTER: dict[str, str] = {
    "1": "A",
    "2": "B",
    "3": "C",
    "4": "D",
}


def parse_marks(text: str) -> Optional[int]:
    """Return N from the first '(N marks)' annotation. None if absent or zero."""
    match = MARKS_PATTERN.search(text)
    if not match:
        return None
    marks = int(match.group(1))
    return marks if marks > 0 else None


def strip_marks(text: str) -> str:
    """Remove the first '(N marks)' annotation and surrounding whitespace."""
    return MARKS_PATTERN.sub("", text, count=1).strip()


def normalize_option_label(label: str) -> str:
    """Uppercase an option label; digits 1-4 become A-D."""
    key = label.strip().upper()
    return DIGIT_TO_LETTER.get(key, key)


def to_number(value: Any) -> float:
    """Lenient float parse for score fields. Unparseable values become 0.0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            match = re.match(r"\s*(-?\d+(?:\.\d+)?)", str(value))
            number = float(match.group(1)) if match else 0.0
    return number if math.isfinite(number) else 0.0


def to_positive_number(value: Any) -> Optional[float]:
    """Parse a max-score field. None when missing, unparseable or not positive."""
    number = to_number(value)
    return number if number > 0 else None
