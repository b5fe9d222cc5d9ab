from typing import List

from pydantic import BaseModel, Field

from landverify.core.constants import OverallStatus, ConfidenceLevel, FlagSeverity


class ScoreBreakdown(BaseModel):
    ownership: int = Field(..., ge=0, le=100)
    documentation: int = Field(..., ge=0, le=100)
    legal: int = Field(..., ge=0, le=100)
    physical: int = Field(..., ge=0, le=100)


class RedFlag(BaseModel):
    severity: FlagSeverity
    category: str
    description: str
    recommendation: str


class GreenFlag(BaseModel):
    category: str
    description: str


class Results(BaseModel):
    """Output of the scoring engine; replaced wholesale on every re-score."""
    score_breakdown: ScoreBreakdown
    verification_score: int = Field(..., ge=0, le=100)
    overall_status: OverallStatus
    confidence_level: ConfidenceLevel
    red_flags: List[RedFlag] = []
    green_flags: List[GreenFlag] = []
