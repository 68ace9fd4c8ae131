"""
Adherence Schemas
Pydantic models for the weekly adherence chart
"""

from typing import List
from datetime import date
from pydantic import BaseModel, Field


# ==================== RESPONSE SCHEMAS ====================

class AdherenceBar(BaseModel):
    """One day of the chart"""
    label: str
    percentage: int = Field(..., ge=0, le=100)
    height: int = Field(..., ge=5, le=100)
    band: str


class WeeklyAdherenceResponse(BaseModel):
    patient_id: int
    week_start: date
    bars: List[AdherenceBar]
    overall_percentage: int
    overall_band: str
    trend: int
    trend_label: str
