"""Pydantic models for segmented exam documents.

This module defines the records produced by the question segmenter, from a
single MCQ option up to the per-document extraction result.

Field names are snake_case in Python and serialise to the camelCase names the
scoring service expects (``questionNumber``, ``selectedAnswer``, ...). Both
spellings are accepted on input.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


QuestionType = Literal["mcq", "short"]


class WireModel(BaseModel):
    """Base model with camelCase wire names.

    ``model_dump(by_alias=True)`` produces the JSON shape sent to the scoring
    service; Python code keeps using snake_case attribute names.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# QUESTION RECORDS
# =============================================================================

class McqOption(WireModel):
    """A single option for a multiple choice question."""
    label: str = Field(description="Option label: A, B, C, or D")
    text: str = Field(default="", description="The content/text of the option")


class MCQRecord(WireModel):
    """A multiple choice question as seen in one document.

    A submission-side record carries ``selected_answer``; a key-side record
    carries ``correct_answer``. The reconciler guarantees only one of the two
    is populated per side.
    """
    question_number: int = Field(gt=0, description="Question number, unique per document after dedup")
    question_text: Optional[str] = Field(
        default=None,
        alias="question",
        description="Question text; absent when only a key line was matched"
    )
    section: Optional[str] = Field(default=None, description="Section label, e.g. 'A'")
    type: Literal["mcq"] = "mcq"
    options: List[McqOption] = Field(default_factory=list)
    selected_answer: Optional[str] = Field(
        default=None,
        description="Respondent's letter choice (submission side only)"
    )
    correct_answer: Optional[str] = Field(
        default=None,
        description="Authoritative letter answer (key side only); '?' when unknown"
    )
    answer_text: Optional[str] = Field(
        default=None,
        description="Free text accompanying the correct answer, e.g. the option text"
    )
    marks: Optional[int] = Field(default=None, gt=0, description="Marks for this question")


class ShortAnswerRecord(WireModel):
    """A short-answer question and the text written for it."""
    question_number: int = Field(gt=0, description="Question number, unique per document after dedup")
    question_text: Optional[str] = Field(default=None, alias="question")
    section: str = Field(default="B", description="Section label")
    type: Literal["short"] = "short"
    answer: str = Field(
        default="",
        description="Answer body; multi-line answers are joined with newlines"
    )
    correct_answer: Optional[str] = Field(
        default=None,
        description="Model answer, set for key-style answer lines"
    )
    marks: Optional[int] = Field(default=None, gt=0, description="Marks for this question")


class DocumentExtractionResult(WireModel):
    """Segmentation output for one document. Immutable once produced."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    mcqs: List[MCQRecord] = Field(default_factory=list)
    short_questions: List[ShortAnswerRecord] = Field(default_factory=list)
    is_answer_sheet: bool = False
    extracted_text: str = ""
    error: Optional[str] = None


# =============================================================================
# PIPELINE INPUT
# =============================================================================

class SourceDocument(BaseModel):
    """A document handed to the pipeline, either inline bytes or a URL."""
    filename: str = Field(description="Original filename; selects the text codec")
    content: Optional[bytes] = Field(default=None, description="Raw document bytes")
    url: Optional[str] = Field(default=None, description="Location to download the document from")
    content_type: Optional[str] = Field(default=None, description="Declared MIME type, if known")
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Identifiers passed through verbatim, e.g. submissionId or examId"
    )

    @model_validator(mode="after")
    def check_single_source(self) -> "SourceDocument":
        """Exactly one of content and url must be provided."""
        if (self.content is None) == (self.url is None):
            raise ValueError("Provide exactly one of 'content' or 'url'")
        return self
