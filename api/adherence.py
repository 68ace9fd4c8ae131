"""
Adherence API Router
Weekly adherence chart of the effective patient
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.deps import get_db, get_patient_id, services
from api.schemas.adherence import AdherenceBar, WeeklyAdherenceResponse


router = APIRouter(prefix="/adherence", tags=["adherence"])


@router.get("/weekly", response_model=WeeklyAdherenceResponse)
async def get_weekly_adherence(
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    """
    Seven bars (Sunday first) coloured green >= 90%, yellow >= 75%, red
    below, plus the trend against last week
    """
    adherence_service = services.get_adherence_service()
    chart, week_start = await adherence_service.get_weekly_adherence(patient_id, db)

    return WeeklyAdherenceResponse(
        patient_id=patient_id,
        week_start=week_start,
        bars=[
            AdherenceBar(label=b.label, percentage=b.percentage, height=b.height, band=b.band.value)
            for b in chart.bars
        ],
        overall_percentage=chart.overall_percentage,
        overall_band=chart.overall_band.value,
        trend=chart.trend,
        trend_label=chart.trend_label,
    )
