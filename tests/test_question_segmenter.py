"""Tests for the question segmenter state machine."""

import pytest

from exam_eval.services.question_segmenter import (
    Cursor,
    ScanState,
    default_question_type,
    looks_like_answer_sheet,
    segment_text,
)
from exam_eval.models.extraction import MCQRecord, ShortAnswerRecord


SUBMISSION_TEXT = """Section A: Multiple Choice Questions
1. What is the capital of France? (2 marks)
A) London
B) Berlin
C) Paris
D) Madrid
Answer: C
2. Which planet is known as the red planet?
A) Mars
B) Venus
Answer: A
Section B: Short Answer Questions
4. Explain photosynthesis. (10 marks)
Plants convert light energy into chemical energy.
This happens in the chloroplasts.
5. Define osmosis.
Movement of water across a membrane.
"""

ANSWER_KEY_TEXT = """Special Answer Sheet
MCQ Answers
Q1: c) Paris (2 marks)
Q2: A) Mars
Short Answer Keys
Q4: Photosynthesis converts light energy
into chemical energy. (10 marks)
Q5: Osmosis is the movement of water
across a semi-permeable membrane.
"""


class TestAnswerKeyLines:
    """Key-style lines on answer sheets."""

    def test_key_mcq_line_with_marks(self):
        result = segment_text("MCQ Answers\nQ1: c) Paris (5 marks)", is_answer_sheet=True)

        assert len(result.mcqs) == 1
        record = result.mcqs[0]
        assert record.question_number == 1
        assert record.correct_answer == "C"
        assert record.answer_text == "Paris"
        assert record.marks == 5
        assert record.selected_answer is None

    def test_key_mcq_line_bare_letter(self):
        result = segment_text("MCQ Answers\nQ2: B", is_answer_sheet=True)

        assert [(m.question_number, m.correct_answer) for m in result.mcqs] == [(2, "B")]
        assert result.mcqs[0].answer_text is None

    def test_full_answer_key(self):
        result = segment_text(ANSWER_KEY_TEXT, is_answer_sheet=True)

        assert result.is_answer_sheet is True
        assert [(m.question_number, m.correct_answer) for m in result.mcqs] == [(1, "C"), (2, "A")]
        assert result.mcqs[0].marks == 2

        assert [q.question_number for q in result.short_questions] == [4, 5]
        q4 = result.short_questions[0]
        assert q4.answer == "Photosynthesis converts light energy into chemical energy."
        assert q4.correct_answer == q4.answer
        assert q4.marks == 10
        assert result.short_questions[1].marks is None

    def test_markers_upgrade_hint(self):
        result = segment_text(ANSWER_KEY_TEXT, is_answer_sheet=False)

        assert result.is_answer_sheet is True
        assert result.mcqs[0].correct_answer == "C"

    def test_lookahead_window_limits_continuation(self):
        text = "Short Answer Keys\nQ4: first\nsecond\nthird\nfourth"

        narrow = segment_text(text, is_answer_sheet=True, lookahead_window=1)
        wide = segment_text(text, is_answer_sheet=True, lookahead_window=10)

        assert narrow.short_questions[0].answer == "first second"
        assert wide.short_questions[0].answer == "first second third fourth"

    def test_lookahead_stops_at_next_key_line(self):
        text = "Short Answer Keys\nQ4: first\nQ5: other\nmore"

        result = segment_text(text, is_answer_sheet=True)

        assert [(q.question_number, q.answer) for q in result.short_questions] == [
            (4, "first"),
            (5, "other more"),
        ]

    def test_answer_indicator_sets_correct_answer_on_key(self):
        text = "1. Capital of France?\nA) London\nB) Paris\nCorrect: B"

        result = segment_text(text, is_answer_sheet=True)

        assert result.mcqs[0].correct_answer == "B"
        assert result.mcqs[0].selected_answer is None

    def test_model_answers_without_short_answer_keys_marker(self):
        text = "MCQ Answers\nQ1: c) Paris\nQ4: Photosynthesis converts light to energy."

        result = segment_text(text, is_answer_sheet=True)

        assert [(m.question_number, m.correct_answer) for m in result.mcqs] == [(1, "C")]
        q4 = result.short_questions[0]
        assert q4.question_number == 4
        assert q4.answer == "Photosynthesis converts light to energy."
        assert q4.correct_answer == q4.answer
        assert q4.question_text is None

    def test_key_question_classified_as_mcq_keeps_its_options(self):
        text = "Q1: Which planet is red?\nA) Mars\nB) Venus\nAnswer: A"

        result = segment_text(text, is_answer_sheet=True)

        assert result.short_questions == []
        assert result.mcqs[0].question_text == "Which planet is red?"
        assert [o.label for o in result.mcqs[0].options] == ["A", "B"]
        assert result.mcqs[0].correct_answer == "A"

    def test_key_short_lines_follow_the_policy(self):
        text = "Q2: Explain gravity."

        result = segment_text(
            text,
            is_answer_sheet=True,
            classify_question=lambda number, section, mode: "short",
        )

        assert result.mcqs == []
        assert result.short_questions[0].correct_answer == "Explain gravity."


class TestSubmissionText:
    """Header-driven segmentation of student submissions."""

    def test_short_answer_closes_before_next_header(self):
        text = (
            "4. Explain photosynthesis. (10 marks)\n"
            "Plants use light.\n"
            "They make sugar.\n"
            "5. Define osmosis."
        )

        result = segment_text(text)

        q4 = result.short_questions[0]
        assert q4.question_number == 4
        assert q4.marks == 10
        assert q4.question_text == "Explain photosynthesis."
        assert q4.answer == "Plants use light.\nThey make sugar."
        assert result.short_questions[1].question_number == 5
        assert result.short_questions[1].answer == ""

    def test_mcq_options_and_selection(self):
        result = segment_text(SUBMISSION_TEXT)

        assert result.is_answer_sheet is False
        assert [m.question_number for m in result.mcqs] == [1, 2]
        q1 = result.mcqs[0]
        assert q1.question_text == "What is the capital of France?"
        assert q1.marks == 2
        assert [o.label for o in q1.options] == ["A", "B", "C", "D"]
        assert q1.options[2].text == "Paris"
        assert q1.selected_answer == "C"
        assert q1.correct_answer is None

    def test_section_b_questions_are_short(self):
        result = segment_text(SUBMISSION_TEXT)

        assert [q.question_number for q in result.short_questions] == [4, 5]
        assert all(q.section == "B" for q in result.short_questions)
        assert result.short_questions[1].answer == "Movement of water across a membrane."

    def test_digit_option_labels_map_to_letters(self):
        text = "1. Pick one\n(1) alpha\n(2) beta\nAnswer: B"

        result = segment_text(text)

        assert [o.label for o in result.mcqs[0].options] == ["A", "B"]
        assert result.mcqs[0].selected_answer == "B"

    def test_first_marks_annotation_wins(self):
        text = "6. Discuss\nBody text (3 marks)\nMore text (7 marks)"

        result = segment_text(text)

        q6 = result.short_questions[0]
        assert q6.marks == 3
        assert q6.answer == "Body text\nMore text (7 marks)"

    def test_header_without_marks_leaves_marks_unset(self):
        result = segment_text("7. Summarise\nA short summary.")

        assert result.short_questions[0].marks is None
        assert result.short_questions[0].answer == "A short summary."

    def test_question_zero_is_not_a_header(self):
        result = segment_text("0. Not a question\n1. Real question")

        assert [m.question_number for m in result.mcqs] == [1]

    def test_section_b_fallback(self):
        # questions run on from the section label, so no header line opens them
        text = (
            "Section B: Short Answer Questions Q4: Explain gravity (5 marks)\n"
            "It pulls things down.\n"
        )

        result = segment_text(text)

        assert len(result.short_questions) == 1
        q4 = result.short_questions[0]
        assert q4.question_number == 4
        assert q4.question_text == "Explain gravity"
        assert q4.answer == "It pulls things down."
        assert q4.marks == 5

    def test_section_b_fallback_skipped_for_answer_sheets(self):
        text = "Section B: Short Answer Questions Q4: Explain gravity\nIt pulls.\n"

        result = segment_text(text, is_answer_sheet=True)

        assert result.short_questions == []

    def test_unstructured_text_yields_empty_lists(self):
        result = segment_text("Lorem ipsum dolor sit amet\nconsectetur adipiscing")

        assert result.mcqs == []
        assert result.short_questions == []
        assert result.error is None

    def test_empty_text(self):
        result = segment_text("")

        assert result.mcqs == []
        assert result.short_questions == []


class TestInvariants:
    """Properties that hold for any input."""

    @pytest.mark.parametrize("text,is_key", [
        (SUBMISSION_TEXT, False),
        (ANSWER_KEY_TEXT, True),
        ("1. a\n1. b\n4. c\n4. d", False),
    ])
    def test_segmentation_is_idempotent(self, text, is_key):
        assert segment_text(text, is_key) == segment_text(text, is_key)

    def test_duplicate_numbers_keep_first(self):
        text = "1. First\nAnswer: A\n1. Again\nAnswer: B\n4. Short\none\n4. Short again\ntwo"

        result = segment_text(text)

        assert [m.question_number for m in result.mcqs] == [1]
        assert result.mcqs[0].selected_answer == "A"
        assert [q.question_number for q in result.short_questions] == [4]
        assert result.short_questions[0].answer == "one"

    def test_no_duplicates_in_answer_key(self):
        text = "MCQ Answers\nQ1: A\nQ1: B\nShort Answer Keys\nQ4: x\nQ4: y"

        result = segment_text(text, True)

        assert len({m.question_number for m in result.mcqs}) == len(result.mcqs)
        assert result.mcqs[0].correct_answer == "A"
        assert len(result.short_questions) == 1

    def test_short_answers_sorted(self):
        result = segment_text("9. Later\nx\n5. Earlier\ny")

        assert [q.question_number for q in result.short_questions] == [5, 9]

    def test_records_are_pushed_by_their_own_type(self):
        # a short record opened by number stays short even inside an MCQ section
        text = "Section A: Multiple Choice Questions\n4. Explain\nbecause"

        result = segment_text(text)

        assert result.mcqs == []
        assert result.short_questions[0].question_number == 4


class TestQuestionTypePolicy:
    """Injectable MCQ/short classification."""

    def test_default_policy(self):
        assert default_question_type(1, None, None) == "mcq"
        assert default_question_type(3, "A", "mcq") == "mcq"
        assert default_question_type(4, None, None) == "short"
        assert default_question_type(1, "B", None) == "short"
        assert default_question_type(2, None, "short") == "short"

    def test_custom_policy(self):
        text = "5. Pick one\nA) x\nB) y\nAnswer: B"

        result = segment_text(text, classify_question=lambda number, section, mode: "mcq")

        assert [m.question_number for m in result.mcqs] == [5]
        assert result.mcqs[0].selected_answer == "B"
        assert result.short_questions == []


class TestScanState:
    """Cursor transitions on the explicit scan state."""

    def test_cursor_follows_open_record(self):
        state = ScanState(is_answer_sheet=False)
        assert state.cursor is Cursor.IDLE

        state.current = MCQRecord(question_number=1)
        assert state.cursor is Cursor.OPEN_MCQ

        state.close()
        assert state.cursor is Cursor.IDLE
        assert len(state.mcqs) == 1

        state.current = ShortAnswerRecord(question_number=4)
        assert state.cursor is Cursor.OPEN_SHORT

    def test_push_skips_duplicates(self):
        state = ScanState(is_answer_sheet=False)
        state.push(MCQRecord(question_number=1, selected_answer="A"))
        state.push(MCQRecord(question_number=1, selected_answer="B"))

        assert [m.selected_answer for m in state.mcqs] == ["A"]


def test_looks_like_answer_sheet():
    assert looks_like_answer_sheet("SPECIAL ANSWER SHEET for Biology") is True
    assert looks_like_answer_sheet("mcq answers\nQ1: A") is True
    assert looks_like_answer_sheet("Student name: Ada") is False
