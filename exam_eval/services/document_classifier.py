"""Cascade classifier for document roles.

Determines whether a document is a student submission or an answer sheet
(key) using a cascade of increasingly expensive checks:

1. Role declared by the caller
2. Filename heuristics (instant)
3. Content marker scan (needs extracted text)
4. Default: submission
"""

import re
from typing import Optional

from exam_eval.models.classification import ClassificationResult
from exam_eval.services.question_segmenter import ANSWER_SHEET_MARKERS


# ---------------------------------------------------------------------------
# Layer 1 – Filename heuristics
# ---------------------------------------------------------------------------

_ANSWER_SHEET_FILENAME_PATTERNS = [
    re.compile(r'answer', re.IGNORECASE),
    re.compile(r'key', re.IGNORECASE),
    re.compile(r'solution', re.IGNORECASE),
    re.compile(r'special', re.IGNORECASE),
]


def _classify_by_filename(filename: str) -> Optional[ClassificationResult]:
    """Classify by scanning the filename for answer-sheet indicators."""
    hits = [p.pattern for p in _ANSWER_SHEET_FILENAME_PATTERNS if p.search(filename)]
    if not hits:
        return None

    return ClassificationResult(
        role="answer_sheet",
        confidence=0.9,
        method="filename",
        signals={"filename_patterns": hits},
    )


# ---------------------------------------------------------------------------
# Layer 2 – Content marker scan
# ---------------------------------------------------------------------------

def _classify_by_content(text: str) -> Optional[ClassificationResult]:
    """Classify by looking for the section markers answer keys carry."""
    lowered = text.lower()
    hits = [marker for marker in ANSWER_SHEET_MARKERS if marker.lower() in lowered]
    if not hits:
        return None

    return ClassificationResult(
        role="answer_sheet",
        confidence=min(0.7 + 0.1 * len(hits), 0.95),
        method="content_keywords",
        signals={"markers": hits},
    )


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

def classify_document(
    filename: str,
    text: Optional[str] = None,
    declared_role: Optional[str] = None,
) -> ClassificationResult:
    """Run the cascade and return as soon as a layer is confident.

    Args:
        filename: Original filename of the document.
        text: Extracted plain text (needed for the content layer).
        declared_role: "submission" or "answer_sheet" when the caller knows.

    Returns:
        ClassificationResult with role, confidence, method, and debug signals.
    """
    if declared_role is not None:
        return ClassificationResult(
            role=declared_role,
            confidence=1.0,
            method="user_provided",
        )

    result = _classify_by_filename(filename)
    if result is not None:
        return result

    if text:
        result = _classify_by_content(text)
        if result is not None:
            return result

    return ClassificationResult(
        role="submission",
        confidence=0.5,
        method="default",
        signals={"reason": "no_layer_matched"},
    )
