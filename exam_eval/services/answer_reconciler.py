"""
Reconcile a student submission against an answer key.

Produces deduplicated, role-correct question lists for both documents:
submission MCQs only carry ``selected_answer`` and key MCQs only carry
``correct_answer``. When the key yields no MCQ records at all, an ordered
chain of fallback tiers tries to rebuild them so evaluation can still run.

Reconciliation never raises for missing or inconsistent data. An unknown
correct answer is represented by the ``"?"`` sentinel.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from exam_eval.models.evaluation import ReconciledAnswers
from exam_eval.models.extraction import DocumentExtractionResult, MCQRecord, ShortAnswerRecord

logger = logging.getLogger(__name__)

# Marker for "correct answer could not be determined"
UNKNOWN_ANSWER = "?"

MCQ_ANSWERS_SECTION = re.compile(r"MCQ Answers(.*?)(?=Short Answer Keys|$)", re.IGNORECASE | re.DOTALL)
DIRECT_ANSWER_LINE = re.compile(r"Q(\d+):\s*([A-D])(?:[)\s]|$)", re.IGNORECASE)

RecordT = TypeVar("RecordT", MCQRecord, ShortAnswerRecord)


@dataclass(frozen=True)
class CorrectAnswer:
    """Key facts for one MCQ, indexed by question number."""
    correct_answer: str
    answer_text: str = ""
    marks: Optional[int] = None


@dataclass
class KeyFallbackContext:
    """Inputs shared by the key MCQ fallback tiers."""
    key_text: str
    student_mcqs: List[MCQRecord]
    correct_index: Dict[int, CorrectAnswer]
    direct_answers: Dict[int, str] = field(default_factory=dict)


KeyFallbackTier = Callable[[KeyFallbackContext], Optional[List[MCQRecord]]]


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------

def dedupe_by_question_number(records: Sequence[RecordT], origin: str) -> List[RecordT]:
    """Keep the first record for each question number, in input order."""
    seen: set[int] = set()
    unique: List[RecordT] = []
    for record in records:
        if record.question_number in seen:
            logger.info(
                f"Skipping duplicate {record.type} Q{record.question_number} from {origin}"
            )
            continue
        seen.add(record.question_number)
        unique.append(record)
    return unique


def as_selected(record: MCQRecord) -> MCQRecord:
    """Return a submission-side copy: a stray correct answer becomes the selection."""
    selected = record.selected_answer or record.correct_answer
    return record.model_copy(update={"selected_answer": selected, "correct_answer": None})


def as_correct(record: MCQRecord) -> MCQRecord:
    """Return a key-side copy: a stray selection becomes the correct answer."""
    correct = record.correct_answer or record.selected_answer
    return record.model_copy(update={"correct_answer": correct, "selected_answer": None})


def build_correct_index(key_mcqs: Sequence[MCQRecord]) -> Dict[int, CorrectAnswer]:
    """Map question number to correct answer facts for key MCQs that have one."""
    index: Dict[int, CorrectAnswer] = {}
    for record in key_mcqs:
        if record.correct_answer:
            index[record.question_number] = CorrectAnswer(
                correct_answer=record.correct_answer,
                answer_text=record.answer_text or "",
                marks=record.marks,
            )
    return index


def parse_direct_answers(key_text: str) -> Dict[int, str]:
    """Read 'Q<n>: <letter>' pairs from the key's MCQ Answers section.

    Returns an empty map when the key text has no "MCQ Answers" heading.
    """
    section = MCQ_ANSWERS_SECTION.search(key_text)
    if not section:
        return {}
    body = section.group(1)

    answers: Dict[int, str] = {}
    for line in body.split("\n"):
        match = DIRECT_ANSWER_LINE.search(line.strip())
        if match:
            number = int(match.group(1))
            if number > 0:
                answers[number] = match.group(2).upper()
    return answers


# ---------------------------------------------------------------------------
# Fallback tiers
# ---------------------------------------------------------------------------

def direct_answers_tier(context: KeyFallbackContext) -> Optional[List[MCQRecord]]:
    """Tier 1: answers listed directly in the key's raw text.

    Only fills ``context.direct_answers`` for the next tier; key records are
    always shaped on the submission's MCQs, so this tier never returns any.
    """
    context.direct_answers = parse_direct_answers(context.key_text)
    logger.info(f"Direct answers extracted from key text: {len(context.direct_answers)}")
    return None


def submission_shape_tier(context: KeyFallbackContext) -> Optional[List[MCQRecord]]:
    """Tier 2: copy each submission MCQ and fill in the best known answer."""
    if not context.student_mcqs:
        return None

    records: List[MCQRecord] = []
    for student in context.student_mcqs:
        number = student.question_number
        indexed = context.correct_index.get(number)
        correct = (
            context.direct_answers.get(number)
            or (indexed.correct_answer if indexed else None)
            or UNKNOWN_ANSWER
        )
        marks = student.marks or (indexed.marks if indexed else None)
        records.append(student.model_copy(update={
            "selected_answer": None,
            "correct_answer": correct,
            "marks": marks,
        }))
    return records


DEFAULT_KEY_FALLBACKS: tuple[KeyFallbackTier, ...] = (
    direct_answers_tier,
    submission_shape_tier,
)


def resolve_key_mcqs(
    key_mcqs: List[MCQRecord],
    context: KeyFallbackContext,
    tiers: Sequence[KeyFallbackTier] = DEFAULT_KEY_FALLBACKS,
) -> List[MCQRecord]:
    """Return key MCQs, running the fallback tiers in order when there are none."""
    if key_mcqs:
        return key_mcqs

    for tier in tiers:
        records = tier(context)
        if records:
            logger.info(f"Key MCQs synthesised by {tier.__name__}: {len(records)}")
            return records

    return []


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def reconcile(
    submission: DocumentExtractionResult,
    key: DocumentExtractionResult,
    *,
    key_fallbacks: Sequence[KeyFallbackTier] = DEFAULT_KEY_FALLBACKS,
) -> ReconciledAnswers:
    """
    Combine a segmented submission and answer key into evaluation-ready lists.

    Args:
        submission: Segmentation result of the student's document
        key: Segmentation result of the answer key
        key_fallbacks: Ordered tiers used when the key has no MCQ records

    Returns:
        ReconciledAnswers with four independent lists; neither input is modified
    """
    student_mcqs = [
        as_selected(record)
        for record in dedupe_by_question_number(submission.mcqs, "student submission")
    ]
    key_mcqs = [
        as_correct(record)
        for record in dedupe_by_question_number(key.mcqs, "answer sheet")
    ]

    context = KeyFallbackContext(
        key_text=key.extracted_text,
        student_mcqs=student_mcqs,
        correct_index=build_correct_index(key_mcqs),
    )
    key_mcqs = resolve_key_mcqs(key_mcqs, context, key_fallbacks)

    student_short = dedupe_by_question_number(submission.short_questions, "student submission")
    key_short = dedupe_by_question_number(key.short_questions, "answer sheet")

    return ReconciledAnswers(
        student_mcqs=student_mcqs,
        student_short_questions=[_copy_short(record) for record in student_short],
        answer_sheet_mcqs=key_mcqs,
        answer_sheet_short_questions=[_copy_short(record) for record in key_short],
    )


def _copy_short(record: ShortAnswerRecord) -> ShortAnswerRecord:
    return record.model_copy(update={"section": record.section or "B"})
