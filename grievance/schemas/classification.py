from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Literal, Optional

Urgency = Literal["critical", "high", "medium", "low"]

SUMMARY_MAX_CHARS = 100

class Classification(BaseModel):
    """
    Structured routing metadata attached to a ticket. Accepts the camelCase
    keys the model is prompted to emit as well as the snake_case names.
    """
    category: str = Field(..., min_length=1, description="Top-level grievance category.")
    sub_category: str = Field("other", alias="subCategory")
    department: str = Field(..., min_length=1, description="Department the ticket is routed to.")
    urgency: Urgency
    urgency_score: float = Field(0.5, ge=0.0, le=1.0, alias="urgencyScore")
    summary: str = ""
    suggested_action: str = Field("", alias="suggestedAction")
    keywords: List[str] = []
    sentiment: str = "neutral"
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    requires_immediate: bool = Field(False, alias="requiresImmediate")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("category", "department", "urgency", mode="before")
    @classmethod
    def _normalise_label(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("summary")
    @classmethod
    def _clip_summary(cls, value: str) -> str:
        return value[:SUMMARY_MAX_CHARS]


class ClassificationOverride(BaseModel):
    actor_id: str = Field(..., description="The admin correcting the AI result.")
    urgency: Optional[Urgency] = None
    department: Optional[str] = None
    category: Optional[str] = None
