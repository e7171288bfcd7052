"""Tests for the document role classifier cascade."""

import pytest

from exam_eval.services.document_classifier import classify_document


class TestFilenameLayer:

    @pytest.mark.parametrize("filename", [
        "Biology_Answer_Sheet.pdf",
        "exam-key.docx",
        "SOLUTIONS_2024.pdf",
        "special_sheet.pdf",
    ])
    def test_answer_sheet_filenames(self, filename):
        result = classify_document(filename)

        assert result.role == "answer_sheet"
        assert result.method == "filename"
        assert result.confidence == 0.9
        assert result.signals["filename_patterns"]

    def test_plain_filename_falls_through(self):
        result = classify_document("ada_lovelace.pdf")

        assert result.role == "submission"
        assert result.method == "default"
        assert result.confidence == 0.5


class TestContentLayer:

    def test_markers_in_text(self):
        result = classify_document("upload.pdf", text="Special Answer Sheet\nMCQ Answers\nQ1: A")

        assert result.is_answer_sheet is True
        assert result.method == "content_keywords"
        assert result.signals["markers"] == ["Special Answer Sheet", "MCQ Answers"]
        assert result.confidence == pytest.approx(0.9)

    def test_text_without_markers(self):
        result = classify_document("upload.pdf", text="1. What is 2+2?\nAnswer: B")

        assert result.role == "submission"
        assert result.method == "default"


class TestDeclaredRole:

    def test_declared_role_wins(self):
        result = classify_document("answer_key.pdf", text="MCQ Answers", declared_role="submission")

        assert result.role == "submission"
        assert result.method == "user_provided"
        assert result.confidence == 1.0

    def test_filename_checked_before_content(self):
        result = classify_document("key.pdf", text="MCQ Answers")

        assert result.method == "filename"
