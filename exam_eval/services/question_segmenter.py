"""
Line-oriented question segmenter for exam documents.

Turns the plain text of a submission or an answer key into MCQ and
short-answer records. The scan is a single forward pass over the lines with
an explicit cursor (idle / open MCQ / open short answer) and a bounded
lookahead for key-style answers that span several lines.

Line classes, tested in priority order for each non-blank line:

1. Section markers ("MCQ Answers", "Short Answer Keys")
2. Key-style MCQ answers ("Q1: c) Paris (5 marks)")
3. Section labels ("Section B: Short Answer Questions")
4. Key-style short answers ("Q4: Photosynthesis is ...") in key mode
5. Question headers ("4. Explain photosynthesis. (10 marks)")
6. Option lines and "Answer:" indicators inside an open MCQ
7. Answer text inside an open short-answer question

Segmentation never raises on irregular text: a document without any
recognisable structure yields empty lists.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Union

from exam_eval.models.extraction import (
    DocumentExtractionResult,
    MCQRecord,
    McqOption,
    QuestionType,
    ShortAnswerRecord,
)
from exam_eval.utils.normalizers import normalize_option_label, parse_marks, strip_marks

logger = logging.getLogger(__name__)

# Default number of lines scanned after a key-style short answer
DEFAULT_LOOKAHEAD_WINDOW = 10

# Phrases that identify an answer key regardless of the caller's hint
ANSWER_SHEET_MARKERS = ("Special Answer Sheet", "MCQ Answers", "Short Answer Keys")

# ---------------------------------------------------------------------------
# Line patterns
# ---------------------------------------------------------------------------

MCQ_ANSWERS_MARKER = re.compile(r"MCQ Answers", re.IGNORECASE)
SHORT_ANSWER_KEYS_MARKER = re.compile(r"Short Answer Keys", re.IGNORECASE)

# "Q1: c) Paris", "Q1: C Paris (5 marks)", "Q2: B"
KEY_MCQ_LINE = re.compile(
    r"^Q(\d+):\s*([A-D])(?:\)|\s+|$)\s*(.*?)(?:\s*\((\d+)\s*marks?\))?$",
    re.IGNORECASE,
)

# "Section A: Multiple Choice Questions", "Section B: Short Answer Questions"
SECTION_LABEL = re.compile(
    r"^Section\s+([A-Z]):\s*(Multiple\s*Choice|Short(?:\s*Answer)?)\s*Questions",
    re.IGNORECASE,
)

# "1.", "Q1.", "Q 1:", "4)", "5 Explain ..."
QUESTION_HEADER = re.compile(r"^(?:Q\s*)?(\d+)[.:)\s]")

# "A) Paris", "(b) London", "3. Berlin"
OPTION_LINE = re.compile(r"^[(]?([A-Da-d1-4])[.:)\s]")

# "Answer: B", "Correct: c"
ANSWER_INDICATOR = re.compile(r"(?:Answer|Correct)\s*:\s*\(?([A-D])\b", re.IGNORECASE)

# "Q4: Photosynthesis is the process ..."
KEY_SHORT_LINE = re.compile(r"^Q(\d+):\s+(.*)", re.IGNORECASE)

# Lines that end a key-style short answer's continuation
KEY_HEADER = re.compile(r"^Q\d+:", re.IGNORECASE)
SECTION_PREFIX = re.compile(r"^Section\s+[A-Z]:", re.IGNORECASE)

# Fallback pass for submissions whose short answers do not sit on header lines
SECTION_B_BLOCK = re.compile(r"Section\s+B:\s*Short\s*Answer\s*Questions(.*)", re.IGNORECASE | re.DOTALL)
SECTION_B_QUESTION = re.compile(r"Q(\d+):\s*([^\n]+)(?:\n|$)((?:(?!Q\d+:).)*)", re.DOTALL)


# ---------------------------------------------------------------------------
# Question type policy
# ---------------------------------------------------------------------------

QuestionTypePolicy = Callable[[int, Optional[str], Optional[QuestionType]], QuestionType]

# Questions numbered at or above this are short answers when nothing else decides
SHORT_ANSWER_FROM_QUESTION = 4


def default_question_type(
    question_number: int,
    section: Optional[str],
    mode: Optional[QuestionType],
) -> QuestionType:
    """Classify a question header: section B, then short mode, then number >= 4.

    The number rule fits papers laid out as three MCQs followed by short
    answers. Pass a different policy to segment_text for other layouts.
    """
    if section == "B" or mode == "short" or question_number >= SHORT_ANSWER_FROM_QUESTION:
        return "short"
    return "mcq"


# ---------------------------------------------------------------------------
# Scan state
# ---------------------------------------------------------------------------

class Cursor(str, Enum):
    """What the scan currently has open."""
    IDLE = "idle"
    OPEN_MCQ = "open_mcq"
    OPEN_SHORT = "open_short"


Record = Union[MCQRecord, ShortAnswerRecord]


@dataclass
class ScanState:
    """All mutable state of one segmentation call."""
    is_answer_sheet: bool
    mcqs: List[MCQRecord] = field(default_factory=list)
    short_questions: List[ShortAnswerRecord] = field(default_factory=list)
    current: Optional[Record] = None
    section: Optional[str] = None
    mode: Optional[QuestionType] = None
    in_mcq_answers: bool = False
    in_short_answer_keys: bool = False

    @property
    def cursor(self) -> Cursor:
        if self.current is None:
            return Cursor.IDLE
        if isinstance(self.current, MCQRecord):
            return Cursor.OPEN_MCQ
        return Cursor.OPEN_SHORT

    def push(self, record: Record) -> None:
        """Append a finished record to its list; first occurrence of a number wins."""
        target: List = self.mcqs if isinstance(record, MCQRecord) else self.short_questions
        if any(existing.question_number == record.question_number for existing in target):
            logger.debug(f"Skipping duplicate {record.type} Q{record.question_number}")
            return
        target.append(record)

    def close(self) -> None:
        """Close the open record, if any."""
        if self.current is not None:
            self.push(self.current)
            self.current = None


# ---------------------------------------------------------------------------
# Line handlers
# ---------------------------------------------------------------------------

def _question_number(raw: str) -> Optional[int]:
    number = int(raw)
    return number if number > 0 else None


def _handle_section_marker(state: ScanState, line: str) -> bool:
    if MCQ_ANSWERS_MARKER.search(line):
        state.close()
        state.in_mcq_answers = True
        state.in_short_answer_keys = False
        state.mode = "mcq"
        logger.debug("Found MCQ Answers section")
        return True
    if SHORT_ANSWER_KEYS_MARKER.search(line):
        state.close()
        state.in_mcq_answers = False
        state.in_short_answer_keys = True
        state.mode = "short"
        logger.debug("Found Short Answer Keys section")
        return True
    return False


def _handle_key_mcq_line(state: ScanState, line: str) -> bool:
    if not (state.in_mcq_answers or (state.is_answer_sheet and state.mode != "short")):
        return False
    match = KEY_MCQ_LINE.match(line)
    if not match:
        return False
    number = _question_number(match.group(1))
    if number is None:
        return False

    state.close()
    marks = int(match.group(4)) if match.group(4) else None
    state.push(MCQRecord(
        question_number=number,
        section=state.section,
        correct_answer=match.group(2).upper(),
        answer_text=match.group(3).strip() or None,
        marks=marks if marks else None,
    ))
    return True


def _handle_section_label(state: ScanState, line: str) -> bool:
    match = SECTION_LABEL.match(line)
    if not match:
        return False
    state.close()
    state.section = match.group(1).upper()
    state.mode = "mcq" if match.group(2).lower().startswith("multiple") else "short"
    logger.debug(f"Found section {state.section}: {state.mode}")
    return True


def _handle_key_short_line(
    state: ScanState,
    lines: List[str],
    index: int,
    lookahead_window: int,
    classify_question: QuestionTypePolicy,
) -> Optional[int]:
    """Capture 'Q<n>: text' plus continuation lines. Returns the last consumed index.

    Applies inside a Short Answer Keys section, and on answer sheets whenever
    the question is short by mode or by the question type policy, so a key
    without the section marker still yields model answers.
    """
    if not (state.in_short_answer_keys or state.is_answer_sheet):
        return None
    line = lines[index].strip()
    match = KEY_SHORT_LINE.match(line)
    if not match:
        return None
    number = _question_number(match.group(1))
    if number is None:
        return None
    if not state.in_short_answer_keys and state.mode != "short":
        if classify_question(number, state.section, state.mode) != "short":
            return None

    state.close()
    parts = [match.group(2).strip()]
    last = index
    for j in range(index + 1, min(len(lines), index + 1 + lookahead_window)):
        next_line = lines[j].strip()
        if (
            KEY_HEADER.match(next_line)
            or SECTION_PREFIX.match(next_line)
            or MCQ_ANSWERS_MARKER.search(next_line)
            or SHORT_ANSWER_KEYS_MARKER.search(next_line)
        ):
            break
        if next_line:
            parts.append(next_line)
            last = j

    answer = " ".join(parts)
    marks = parse_marks(answer)
    if marks is not None:
        answer = strip_marks(answer)
    state.push(ShortAnswerRecord(
        question_number=number,
        section=state.section or "B",
        answer=answer,
        correct_answer=answer,
        marks=marks,
    ))
    return last


def _handle_question_header(
    state: ScanState,
    line: str,
    classify_question: QuestionTypePolicy,
) -> bool:
    match = QUESTION_HEADER.match(line)
    if not match:
        return False
    number = _question_number(match.group(1))
    if number is None:
        return False

    state.close()
    marks = parse_marks(line)
    question_text = strip_marks(line[match.end():].strip()) or None
    question_type = classify_question(number, state.section, state.mode)
    section = state.section or ("B" if question_type == "short" else "A")

    if question_type == "short":
        state.current = ShortAnswerRecord(
            question_number=number,
            question_text=question_text,
            section=section,
            marks=marks,
        )
    else:
        state.current = MCQRecord(
            question_number=number,
            question_text=question_text,
            section=section,
            marks=marks,
        )
    return True


def _handle_mcq_body(state: ScanState, line: str) -> None:
    record = state.current
    if not isinstance(record, MCQRecord):
        return

    option = OPTION_LINE.match(line)
    if option:
        record.options.append(McqOption(
            label=normalize_option_label(option.group(1)),
            text=line[option.end():].strip(),
        ))

    indicator = ANSWER_INDICATOR.search(line)
    if indicator:
        letter = indicator.group(1).upper()
        if state.is_answer_sheet:
            record.correct_answer = letter
        else:
            record.selected_answer = letter


def _next_content_line(lines: List[str], index: int) -> Optional[str]:
    for j in range(index + 1, len(lines)):
        candidate = lines[j].strip()
        if candidate:
            return candidate
    return None


def _handle_short_body(state: ScanState, lines: List[str], index: int) -> None:
    record = state.current
    if not isinstance(record, ShortAnswerRecord):
        return

    line = lines[index].strip()
    if record.marks is None:
        marks = parse_marks(line)
        if marks is not None:
            record.marks = marks
            line = strip_marks(line)

    if line:
        record.answer = f"{record.answer}\n{line}" if record.answer else line

    upcoming = _next_content_line(lines, index)
    if upcoming is not None and QUESTION_HEADER.match(upcoming):
        state.close()


def _close_at_end(state: ScanState) -> None:
    record = state.current
    if record is None:
        return
    if isinstance(record, ShortAnswerRecord) and record.marks is None and record.answer:
        record.marks = parse_marks(record.answer)
    state.close()


def _extract_section_b_fallback(text: str) -> List[ShortAnswerRecord]:
    """Read 'Q<n>: question' blocks after a Section B heading."""
    block = SECTION_B_BLOCK.search(text)
    if not block:
        return []

    records: List[ShortAnswerRecord] = []
    seen: set[int] = set()
    for match in SECTION_B_QUESTION.finditer(block.group(1)):
        number = _question_number(match.group(1))
        if number is None or number in seen:
            continue
        seen.add(number)
        question_text = match.group(2).strip()
        records.append(ShortAnswerRecord(
            question_number=number,
            question_text=strip_marks(question_text) or None,
            section="B",
            answer=match.group(3).strip(),
            marks=parse_marks(question_text),
        ))
    return records


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def looks_like_answer_sheet(text: str) -> bool:
    """True if the text carries one of the answer key marker phrases."""
    lowered = text.lower()
    return any(marker.lower() in lowered for marker in ANSWER_SHEET_MARKERS)


def segment_text(
    text: str,
    is_answer_sheet: bool = False,
    *,
    classify_question: QuestionTypePolicy = default_question_type,
    lookahead_window: int = DEFAULT_LOOKAHEAD_WINDOW,
) -> DocumentExtractionResult:
    """
    Segment document text into MCQ and short-answer records.

    Args:
        text: Plain text extracted from the document
        is_answer_sheet: Caller's hint that this is an answer key; upgraded
            automatically when the text carries answer key markers
        classify_question: Policy deciding MCQ vs short answer for a header
        lookahead_window: Lines scanned after a key-style short answer

    Returns:
        DocumentExtractionResult; short answers sorted by question number,
        MCQs in scan order

    Example:
        >>> result = segment_text("MCQ Answers\\nQ1: c) Paris (5 marks)", True)
        >>> result.mcqs[0].correct_answer
        'C'
    """
    if not is_answer_sheet and looks_like_answer_sheet(text):
        is_answer_sheet = True
        logger.debug("Detected document as an answer sheet based on content")

    state = ScanState(is_answer_sheet=is_answer_sheet)
    lines = text.split("\n")

    index = 0
    while index < len(lines):
        index = _step(state, lines, index, classify_question, lookahead_window) + 1

    _close_at_end(state)

    short_questions = state.short_questions
    if not is_answer_sheet and not short_questions:
        short_questions = _extract_section_b_fallback(text)
        if short_questions:
            logger.debug(f"Section B fallback found {len(short_questions)} short questions")

    short_questions = sorted(short_questions, key=lambda q: q.question_number)

    if not state.mcqs and not short_questions:
        logger.debug("No questions recognised in document text")

    return DocumentExtractionResult(
        mcqs=state.mcqs,
        short_questions=short_questions,
        is_answer_sheet=is_answer_sheet,
        extracted_text=text,
    )


def _step(
    state: ScanState,
    lines: List[str],
    index: int,
    classify_question: QuestionTypePolicy,
    lookahead_window: int,
) -> int:
    """Apply the first matching line class. Returns the last index consumed."""
    line = lines[index].strip()
    if not line:
        return index

    if _handle_section_marker(state, line):
        return index
    if _handle_key_mcq_line(state, line):
        return index
    if _handle_section_label(state, line):
        return index

    consumed = _handle_key_short_line(state, lines, index, lookahead_window, classify_question)
    if consumed is not None:
        return consumed

    if _handle_question_header(state, line, classify_question):
        return index

    if state.cursor is Cursor.OPEN_MCQ:
        _handle_mcq_body(state, line)
    elif state.cursor is Cursor.OPEN_SHORT:
        _handle_short_body(state, lines, index)
    return index
