"""Cost estimate model"""

from enum import Enum

from pydantic import BaseModel, Field


class Certainty(str, Enum):
    """Confidence of a cost estimate"""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class CostEstimate(BaseModel):
    """Repair cost estimate returned by the text service"""

    cost_estimate: int = Field(..., description="Estimated cost in whole rupees", ge=0)
    certainty: Certainty = Field(default=Certainty.LOW)
    notes: str = Field(default="", description="Free-text notes")

    model_config = {
        "frozen": True,
    }
