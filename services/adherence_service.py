"""
Adherence Service
Weekly adherence percentages computed from medication logs
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

import models
from models import MedicationLogStatus
from tools.adherence_chart import WeeklyChart, build_weekly_chart
from tools.dose_status import DoseStatus, derive_dose_status, local_day_bounds, local_today, to_display_time


logger = logging.getLogger(__name__)


def week_start(day: date) -> date:
    """Sunday on or before the given date"""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def raw_percentage(taken: int, due: int) -> float:
    return taken * 100 / due if due else 0.0


class AdherenceService:
    """
    Service for adherence tracking and analysis

    A dose counts towards adherence once it is due: taken, overdue or
    missed. Doses still pending are left out so a day in progress is not
    penalised.
    """

    def _daily_counts(
        self,
        patient_id: int,
        start: date,
        end: date,
        db: Session,
        now: datetime,
    ) -> Dict[date, Tuple[int, int]]:
        """{local date: (taken, due)} for start <= date < end"""
        range_start, _ = local_day_bounds(start)
        range_end, _ = local_day_bounds(end)

        logs = db.query(models.MedicationLog).filter(
            models.MedicationLog.patient_id == patient_id,
            models.MedicationLog.scheduled_date_time >= range_start,
            models.MedicationLog.scheduled_date_time < range_end,
        ).all()

        counts = defaultdict(lambda: [0, 0])
        for log in logs:
            day = to_display_time(log.scheduled_date_time).date()
            if log.status == MedicationLogStatus.MISSED:
                counts[day][1] += 1
                continue

            actual = log.actual_date_time
            if actual is None and log.status == MedicationLogStatus.TAKEN:
                actual = log.scheduled_date_time
            state = derive_dose_status(log.scheduled_date_time, actual, now)
            if state.status == DoseStatus.PENDING:
                continue
            counts[day][1] += 1
            if state.status == DoseStatus.TAKEN:
                counts[day][0] += 1

        return {day: (taken, due) for day, (taken, due) in counts.items()}

    async def get_week_percentages(
        self,
        patient_id: int,
        db: Session,
        start: date,
        now: Optional[datetime] = None,
    ) -> Tuple[List[float], float]:
        """
        Unrounded per-day percentages of the 7 days from start, and the
        week's overall percentage. Rounding is left to the chart so colour
        bands see the exact value.
        """
        now = now or datetime.utcnow()
        counts = self._daily_counts(patient_id, start, start + timedelta(days=7), db, now)

        days = [start + timedelta(days=i) for i in range(7)]
        daily = [raw_percentage(*counts.get(day, (0, 0))) for day in days]
        taken = sum(counts.get(day, (0, 0))[0] for day in days)
        due = sum(counts.get(day, (0, 0))[1] for day in days)
        return daily, raw_percentage(taken, due)

    async def get_weekly_adherence(
        self,
        patient_id: int,
        db: Session,
        now: Optional[datetime] = None,
    ) -> Tuple[WeeklyChart, date]:
        """
        Chart of the current week (Sunday first) with the trend against
        the previous week

        Returns:
            (chart, first day of the week)
        """
        now = now or datetime.utcnow()
        start = week_start(local_today(now))

        daily, overall = await self.get_week_percentages(patient_id, db, start, now)
        _, previous = await self.get_week_percentages(patient_id, db, start - timedelta(days=7), now)

        trend = int(round(overall)) - int(round(previous))
        chart = build_weekly_chart(daily, trend=trend, overall_percentage=overall)
        logger.debug(f"Weekly adherence for patient {patient_id}: {overall:.1f}% (previous {previous:.1f}%)")
        return chart, start


# Singleton instance
adherence_service = AdherenceService()
