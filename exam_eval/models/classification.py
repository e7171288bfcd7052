"""Pydantic model for document role classification results.

Used by the document classifier to report whether a document is a student
submission or an answer sheet (key).
"""

from typing import Any, Dict, Literal
from pydantic import BaseModel, Field


class ClassificationResult(BaseModel):
    """Result of deciding a document's role."""

    role: Literal["submission", "answer_sheet"] = Field(
        description="Classified document role"
    )
    confidence: float = Field(
        ge=0.0, le=1.0,
        description="Classification confidence (0.0 to 1.0)"
    )
    method: Literal["user_provided", "filename", "content_keywords", "default"] = Field(
        description="Which classification layer produced the result"
    )
    signals: Dict[str, Any] = Field(
        default_factory=dict,
        description="Debug info: matched patterns, keyword hits, etc."
    )

    @property
    def is_answer_sheet(self) -> bool:
        return self.role == "answer_sheet"
