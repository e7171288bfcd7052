"""Pydantic models for reconciled answers and the scoring request."""

from typing import Any, Dict, List

from pydantic import Field

from exam_eval.models.extraction import MCQRecord, ShortAnswerRecord, WireModel


class ReconciledAnswers(WireModel):
    """Deduplicated, role-correct question lists for both documents."""
    student_mcqs: List[MCQRecord] = Field(default_factory=list)
    student_short_questions: List[ShortAnswerRecord] = Field(default_factory=list)
    answer_sheet_mcqs: List[MCQRecord] = Field(default_factory=list)
    answer_sheet_short_questions: List[ShortAnswerRecord] = Field(default_factory=list)


class DocumentPayload(WireModel):
    """One side of the scoring request."""
    mcqs: List[MCQRecord] = Field(default_factory=list)
    short_questions: List[ShortAnswerRecord] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Filename and identifiers; never interpreted by the pipeline"
    )


class ReconciledEvaluationRequest(WireModel):
    """The payload handed to the external scoring service."""
    student_submission: DocumentPayload
    answer_sheet: DocumentPayload

    def to_payload(self) -> Dict[str, Any]:
        """Return the JSON-ready camelCase dict sent over the wire."""
        return self.model_dump(mode="json", by_alias=True)
