"""
Tools Package
Pure helpers for the MedTracker system: dose wording, adherence charts and the API client
"""

from .dose_status import (
    DoseStatus,
    Taken,
    Pending,
    Overdue,
    DoseState,
    derive_dose_status,
    describe_dose,
    format_delay,
    sort_by_time_of_day,
    sort_today_logs,
)

from .adherence_chart import (
    AdherenceBand,
    ChartBar,
    WeeklyChart,
    adherence_band,
    build_weekly_chart,
)

from .api_client import (
    MedTrackClient,
    MedTrackApiError,
    QueryCache,
    STALE_TIMES,
    medical_queries_enabled,
)

__all__ = [
    # Dose status
    "DoseStatus",
    "Taken",
    "Pending",
    "Overdue",
    "DoseState",
    "derive_dose_status",
    "describe_dose",
    "format_delay",
    "sort_by_time_of_day",
    "sort_today_logs",

    # Adherence chart
    "AdherenceBand",
    "ChartBar",
    "WeeklyChart",
    "adherence_band",
    "build_weekly_chart",

    # API client
    "MedTrackClient",
    "MedTrackApiError",
    "QueryCache",
    "STALE_TIMES",
    "medical_queries_enabled",
]
