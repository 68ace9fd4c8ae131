"""
Adherence Chart Tool
Colour bands and bar geometry for the weekly adherence chart
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence


class AdherenceBand(str, Enum):
    """Colour band of an adherence percentage"""
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


GREEN_THRESHOLD = 90
YELLOW_THRESHOLD = 75
MIN_BAR_HEIGHT = 5

# Sunday first
DAY_LABELS = ["D", "S", "T", "Q", "Q", "S", "S"]


@dataclass
class ChartBar:
    label: str
    percentage: int
    height: int
    band: AdherenceBand


@dataclass
class WeeklyChart:
    """Bars for one week plus overall percentage and trend"""
    bars: List[ChartBar] = field(default_factory=list)
    overall_percentage: int = 0
    trend: int = 0
    trend_label: str = ""
    overall_band: AdherenceBand = AdherenceBand.RED


def adherence_band(percentage: float) -> AdherenceBand:
    if percentage >= GREEN_THRESHOLD:
        return AdherenceBand.GREEN
    if percentage >= YELLOW_THRESHOLD:
        return AdherenceBand.YELLOW
    return AdherenceBand.RED


def bar_height(percentage: float) -> int:
    """Bar height in percent; never below the floor so empty days stay visible"""
    return max(int(round(percentage)), MIN_BAR_HEIGHT)


def trend_label(trend: int) -> str:
    sign = "+" if trend >= 0 else ""
    return f"{sign}{trend}% esta semana"


def build_weekly_chart(
    daily_percentages: Sequence[float],
    trend: int = 0,
    overall_percentage: Optional[float] = None,
) -> WeeklyChart:
    """
    Build chart data from seven per-day percentages (Sunday first).

    Percentages are clamped to 0-100. Bands use the unrounded value, so
    89.5 stays yellow while showing 90. When overall_percentage is not
    given it is the mean of the days.
    """
    if len(daily_percentages) != len(DAY_LABELS):
        raise ValueError(f"Expected {len(DAY_LABELS)} daily percentages, got {len(daily_percentages)}")

    bars = []
    for label, raw in zip(DAY_LABELS, daily_percentages):
        clamped = min(max(raw, 0), 100)
        pct = int(round(clamped))
        bars.append(ChartBar(label=label, percentage=pct, height=bar_height(pct), band=adherence_band(clamped)))

    if overall_percentage is None:
        overall_percentage = sum(min(max(raw, 0), 100) for raw in daily_percentages) / len(bars)
    overall = int(round(overall_percentage))

    return WeeklyChart(
        bars=bars,
        overall_percentage=overall,
        trend=trend,
        trend_label=trend_label(trend),
        overall_band=adherence_band(overall_percentage),
    )
