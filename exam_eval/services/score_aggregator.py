"""
Aggregate per-question scores from the scoring service into a summary.

Two response shapes are understood:

- structured: ``{scoreSummary?, mcqResults, shortQuestionResults}`` where each
  result carries ``obtainedMarks`` and ``marks``
- legacy: ``{score, maxScore, percentage, evaluationDetails: {mcqResults,
  shortQuestionResults}}`` where each result carries ``score`` and
  ``maxScore``, optionally wrapped in ``{"result": {...}}``

Any other JSON object yields an outcome without a summary. Top-level totals
reported by the service are authoritative and never recomputed.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from exam_eval.models.scoring import EvaluationOutcome, ScoreSummary
from exam_eval.services.scoring_client import OracleError
from exam_eval.utils.normalizers import to_number, to_positive_number

logger = logging.getLogger(__name__)

SCORE_FIELDS = ("obtainedMarks", "score")
MAX_FIELDS = ("marks", "maxScore")


def _first_present(result: Dict[str, Any], fields: Tuple[str, ...]) -> Any:
    for name in fields:
        if result.get(name) is not None:
            return result[name]
    return None


def _result_list(container: Dict[str, Any], name: str) -> List[Dict[str, Any]]:
    items = container.get(name)
    if not isinstance(items, list):
        return []
    return [dict(item) for item in items if isinstance(item, dict)]


def _summarize(
    mcq_results: List[Dict[str, Any]],
    short_results: List[Dict[str, Any]],
    overall_obtained: Optional[float],
    overall_max: Optional[float],
) -> ScoreSummary:
    """Build a summary from per-question results and optional service totals."""
    mcq_obtained = sum(to_number(_first_present(r, SCORE_FIELDS)) for r in mcq_results)
    # a missing or zero max counts as 1 per question so the total is never 0
    mcq_total = sum(to_positive_number(_first_present(r, MAX_FIELDS)) or 1.0 for r in mcq_results)
    short_obtained = sum(to_number(_first_present(r, SCORE_FIELDS)) for r in short_results)

    if overall_max is not None:
        short_total = max(overall_max - len(mcq_results), float(len(short_results)))
    else:
        short_total = sum(to_positive_number(_first_present(r, MAX_FIELDS)) or 0.0 for r in short_results)

    total_obtained = overall_obtained if overall_obtained is not None else mcq_obtained + short_obtained
    total_marks = overall_max if overall_max is not None else mcq_total + short_total

    return ScoreSummary(
        mcq_obtained=max(0.0, mcq_obtained),
        mcq_total=mcq_total,
        short_obtained=max(0.0, short_obtained),
        short_total=max(0.0, short_total),
        total_obtained=max(0.0, total_obtained),
        total_marks=max(0.0, total_marks),
    )


def _optional_number(value: Any) -> Optional[float]:
    return None if value is None else to_number(value)


def _aggregate_structured(body: Dict[str, Any]) -> EvaluationOutcome:
    mcq_results = _result_list(body, "mcqResults")
    short_results = _result_list(body, "shortQuestionResults")

    reported = body.get("scoreSummary")
    reported = reported if isinstance(reported, dict) else {}

    summary = _summarize(
        mcq_results,
        short_results,
        overall_obtained=_optional_number(reported.get("totalObtained")),
        overall_max=to_positive_number(reported.get("totalMarks")),
    )
    return EvaluationOutcome(
        summary=summary,
        mcq_results=mcq_results,
        short_question_results=short_results,
        response_shape="structured",
    )


def _aggregate_legacy(body: Dict[str, Any]) -> EvaluationOutcome:
    details = body["evaluationDetails"]
    mcq_results = _result_list(details, "mcqResults")
    short_results = _result_list(details, "shortQuestionResults")

    summary = _summarize(
        mcq_results,
        short_results,
        overall_obtained=_optional_number(body.get("score")),
        overall_max=to_positive_number(body.get("maxScore")),
    )
    return EvaluationOutcome(
        summary=summary,
        mcq_results=mcq_results,
        short_question_results=short_results,
        response_shape="legacy",
    )


def detect_shape(response: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    """Return the response shape name and the object holding the results."""
    body = response
    nested = response.get("result")
    if isinstance(nested, dict) and "mcqResults" not in response:
        body = nested

    if isinstance(body.get("evaluationDetails"), dict):
        return "legacy", body
    if "mcqResults" in body or "shortQuestionResults" in body:
        return "structured", body
    return "unknown", body


def aggregate_scores(response: Any) -> EvaluationOutcome:
    """
    Turn a scoring service response into an EvaluationOutcome.

    Args:
        response: Decoded JSON returned by the scoring service

    Returns:
        EvaluationOutcome; ``summary`` is None for unrecognised shapes

    Raises:
        OracleError: If the response is not a JSON object at all
    """
    if not isinstance(response, dict):
        raise OracleError(
            f"Scoring response must be a JSON object, got {type(response).__name__}"
        )

    shape, body = detect_shape(response)

    if shape == "structured":
        outcome = _aggregate_structured(body)
    elif shape == "legacy":
        outcome = _aggregate_legacy(body)
    else:
        logger.warning(f"Unrecognised scoring response shape; keys={sorted(response.keys())}")
        return EvaluationOutcome(response_shape="unknown")

    summary = outcome.summary
    logger.info(
        f"Aggregated {shape} scores: {summary.total_obtained:g}/{summary.total_marks:g} "
        f"({summary.total_percentage}%, {summary.grade})"
    )
    return outcome
