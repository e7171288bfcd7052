"""
Evaluation pipeline orchestration.

One invocation grades one submission against one answer key:

1. Extract and segment both documents concurrently
2. Reconcile the two segmentation results
3. Build the scoring request
4. Score it with the external service and aggregate the results

Each invocation owns all of its data; nothing is shared between calls, so
independent evaluations can run in parallel. Extraction and scoring failures
propagate unchanged and no partial request is returned.
"""

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from exam_eval.config import Settings, get_settings
from exam_eval.models.evaluation import ReconciledEvaluationRequest
from exam_eval.models.extraction import DocumentExtractionResult, SourceDocument
from exam_eval.models.scoring import EvaluationOutcome
from exam_eval.services.answer_reconciler import reconcile
from exam_eval.services.document_classifier import classify_document
from exam_eval.services.question_segmenter import QuestionTypePolicy, default_question_type, segment_text
from exam_eval.services.request_builder import build_evaluation_request
from exam_eval.services.score_aggregator import aggregate_scores
from exam_eval.services.scoring_client import score_submission
from exam_eval.services.text_extractor import LoadedDocument, load_document_text

logger = logging.getLogger(__name__)

Scorer = Callable[..., Awaitable[Dict[str, Any]]]


def _log_stage(stage: str, started: float, **fields: Any) -> None:
    log_data = {
        "stage": stage,
        **fields,
        "duration_ms": round((time.time() - started) * 1000, 2),
    }
    logger.info(json.dumps(log_data))


async def extract_and_segment(
    document: SourceDocument,
    *,
    answer_sheet: bool,
    settings: Settings,
    classify_question: QuestionTypePolicy = default_question_type,
    lookahead_window: Optional[int] = None,
) -> Tuple[DocumentExtractionResult, LoadedDocument]:
    """Load one document and segment its text.

    The answer key is always treated as an answer sheet. For the submission
    the hint comes from the role classifier.
    """
    started = time.time()
    loaded = await load_document_text(document, settings)

    if answer_sheet:
        is_answer_sheet = True
    else:
        classification = classify_document(document.filename, loaded.text)
        is_answer_sheet = classification.is_answer_sheet
        if is_answer_sheet:
            logger.warning(
                f"Submission {loaded.filename} looks like an answer sheet "
                f"(method={classification.method})"
            )

    result = segment_text(
        loaded.text,
        is_answer_sheet,
        classify_question=classify_question,
        lookahead_window=lookahead_window or settings.key_answer_lookahead,
    )

    _log_stage(
        "segment",
        started,
        filename=loaded.filename,
        role="answer_sheet" if answer_sheet else "submission",
        is_answer_sheet=result.is_answer_sheet,
        mcqs=len(result.mcqs),
        short_questions=len(result.short_questions),
    )
    return result, loaded


async def prepare_evaluation(
    submission: SourceDocument,
    answer_sheet: SourceDocument,
    *,
    settings: Optional[Settings] = None,
    classify_question: QuestionTypePolicy = default_question_type,
    lookahead_window: Optional[int] = None,
) -> ReconciledEvaluationRequest:
    """
    Extract, segment, reconcile and assemble the scoring request.

    Args:
        submission: The student's document
        answer_sheet: The answer key document
        settings: Defaults to the cached environment settings
        classify_question: Policy deciding MCQ vs short answer per question
        lookahead_window: Lines scanned after key-style short answers

    Returns:
        ReconciledEvaluationRequest ready for the scoring service

    Raises:
        ExtractionError: If either document cannot be fetched or decoded
    """
    settings = settings or get_settings()

    (student_result, student_doc), (key_result, key_doc) = await asyncio.gather(
        extract_and_segment(
            submission,
            answer_sheet=False,
            settings=settings,
            classify_question=classify_question,
            lookahead_window=lookahead_window,
        ),
        extract_and_segment(
            answer_sheet,
            answer_sheet=True,
            settings=settings,
            classify_question=classify_question,
            lookahead_window=lookahead_window,
        ),
    )

    started = time.time()
    reconciled = reconcile(student_result, key_result)

    request = build_evaluation_request(
        reconciled,
        submission_metadata={
            "filename": student_doc.filename,
            "contentHash": student_doc.content_hash,
            **submission.metadata,
        },
        answer_sheet_metadata={
            "filename": key_doc.filename,
            "contentHash": key_doc.content_hash,
            **answer_sheet.metadata,
        },
    )

    _log_stage(
        "reconcile",
        started,
        student_mcqs=len(reconciled.student_mcqs),
        student_short_questions=len(reconciled.student_short_questions),
        key_mcqs=len(reconciled.answer_sheet_mcqs),
        key_short_questions=len(reconciled.answer_sheet_short_questions),
        unresolved_key_mcqs=sum(
            1 for record in reconciled.answer_sheet_mcqs if record.correct_answer == "?"
        ),
    )
    return request


async def evaluate_submission(
    submission: SourceDocument,
    answer_sheet: SourceDocument,
    *,
    settings: Optional[Settings] = None,
    oracle_url: Optional[str] = None,
    classify_question: QuestionTypePolicy = default_question_type,
    lookahead_window: Optional[int] = None,
    scorer: Scorer = score_submission,
) -> EvaluationOutcome:
    """
    Run the whole pipeline: prepare, score, aggregate.

    ``scorer`` defaults to the HTTP scoring client; callers may pass a wrapped
    version (e.g. with retries).

    Raises:
        ExtractionError: If either document cannot be fetched or decoded
        OracleError: If the scoring service fails or its response is unusable
    """
    settings = settings or get_settings()

    request = await prepare_evaluation(
        submission,
        answer_sheet,
        settings=settings,
        classify_question=classify_question,
        lookahead_window=lookahead_window,
    )

    started = time.time()
    response = await scorer(
        request,
        base_url=oracle_url or settings.scoring_oracle_url,
        timeout_seconds=settings.oracle_timeout_seconds,
        api_key=settings.scoring_oracle_api_key,
    )
    outcome = aggregate_scores(response)

    summary = outcome.summary
    _log_stage(
        "score",
        started,
        response_shape=outcome.response_shape,
        total_obtained=summary.total_obtained if summary else None,
        total_marks=summary.total_marks if summary else None,
        percentage=summary.total_percentage if summary else None,
    )
    return outcome
