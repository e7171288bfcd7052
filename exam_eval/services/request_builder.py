"""
Assemble the scoring oracle request from reconciled answers.

Pure defaulting and shaping step: missing key marks get their defaults and
caller metadata is attached verbatim. Nothing already reconciled is dropped.
"""

from typing import Any, Dict, Optional

from exam_eval.models.evaluation import DocumentPayload, ReconciledAnswers, ReconciledEvaluationRequest

DEFAULT_MCQ_MARKS = 1
DEFAULT_SHORT_MARKS = 5


def build_evaluation_request(
    reconciled: ReconciledAnswers,
    submission_metadata: Optional[Dict[str, Any]] = None,
    answer_sheet_metadata: Optional[Dict[str, Any]] = None,
) -> ReconciledEvaluationRequest:
    """
    Shape reconciled lists into the canonical oracle request.

    Args:
        reconciled: Output of the answer reconciler
        submission_metadata: Filename, submission identifiers, etc.
        answer_sheet_metadata: Filename, exam identifiers, etc.

    Returns:
        ReconciledEvaluationRequest ready for ``to_payload()``
    """
    key_mcqs = [
        record if record.marks else record.model_copy(update={"marks": DEFAULT_MCQ_MARKS})
        for record in reconciled.answer_sheet_mcqs
    ]
    key_short = [
        record if record.marks else record.model_copy(update={"marks": DEFAULT_SHORT_MARKS})
        for record in reconciled.answer_sheet_short_questions
    ]

    return ReconciledEvaluationRequest(
        student_submission=DocumentPayload(
            mcqs=list(reconciled.student_mcqs),
            short_questions=list(reconciled.student_short_questions),
            metadata=dict(submission_metadata or {}),
        ),
        answer_sheet=DocumentPayload(
            mcqs=key_mcqs,
            short_questions=key_short,
            metadata=dict(answer_sheet_metadata or {}),
        ),
    )
