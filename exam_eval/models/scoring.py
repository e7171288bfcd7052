"""Pydantic models for aggregated scores.

Percentages and the letter grade are derived from the stored totals every
time they are read, so a summary can never carry a stale percentage.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, computed_field

from exam_eval.models.extraction import WireModel
from exam_eval.utils.grading import letter_grade, percentage


class ScoreSummary(WireModel):
    """Obtained and maximum marks per question type plus overall totals."""
    mcq_obtained: float = Field(default=0.0, ge=0)
    mcq_total: float = Field(default=0.0, ge=0)
    short_obtained: float = Field(default=0.0, ge=0)
    short_total: float = Field(default=0.0, ge=0)
    total_obtained: float = Field(default=0.0, ge=0)
    total_marks: float = Field(default=0.0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def mcq_percentage(self) -> int:
        return percentage(self.mcq_obtained, self.mcq_total)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def short_percentage(self) -> int:
        return percentage(self.short_obtained, self.short_total)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_percentage(self) -> int:
        return percentage(self.total_obtained, self.total_marks)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def grade(self) -> str:
        return letter_grade(self.total_percentage)


class EvaluationOutcome(WireModel):
    """Aggregated scoring result returned to the caller."""
    summary: Optional[ScoreSummary] = Field(
        default=None,
        serialization_alias="scoreSummary",
        description="None when the scoring response had no recognisable structure"
    )
    mcq_results: List[Dict[str, Any]] = Field(default_factory=list)
    short_question_results: List[Dict[str, Any]] = Field(default_factory=list)
    response_shape: Literal["structured", "legacy", "unknown"] = "unknown"
