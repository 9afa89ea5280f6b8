"""
Funnel analytics over application records.

Counts are cumulative: a record sitting at "Interview" also counts toward
every earlier stage, so the sequence of counts never increases going down
the funnel.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional, Sequence

from .date_filter import DateRange, filter_by_date
from .stages import STAGE_ORDER, Stage, stage_index

# Chart scaling used by the dashboard renderers
BAR_MIN_HEIGHT = 30
BAR_MAX_HEIGHT = 170


@dataclass(frozen=True)
class StageStat:
    """Funnel statistics for a single stage"""
    stage: Stage
    count: int
    percent_of_total: float
    percent_of_previous: Optional[float]  # None for the first stage

    @property
    def previous_label(self) -> str:
        if self.percent_of_previous is None:
            return "-"
        return f"{self.percent_of_previous:.1f}%"

    def to_dict(self) -> dict:
        return {
            "stage": self.stage.value,
            "count": self.count,
            "percent_of_total": self.percent_of_total,
            "percent_of_previous": self.percent_of_previous,
        }


@dataclass(frozen=True)
class FunnelReport:
    """Funnel over a date-filtered record set"""
    total: int
    stages: List[StageStat]
    date_range: DateRange = field(default_factory=DateRange)


def round_percent(value: float) -> float:
    """Round to one decimal, halves away from zero on the exact binary value"""
    return float(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _status_of(record: Any) -> Any:
    if isinstance(record, dict):
        return record.get("status")
    return getattr(record, "status", None)


def cumulative_counts(records: Iterable[Any]) -> List[int]:
    """Number of records at or beyond each stage, in funnel order"""
    counts = [0] * len(STAGE_ORDER)
    for record in records:
        index = stage_index(_status_of(record))
        # Unknown statuses (index -1) reach no stage
        for i in range(index + 1):
            counts[i] += 1
    return counts


def compute_funnel(records: Sequence[Any]) -> List[StageStat]:
    """
    Compute cumulative stage statistics.

    Always returns one StageStat per stage. With no records every count and
    percentage is zero and the first stage keeps its None "no previous"
    marker.
    """
    total = len(records)
    counts = cumulative_counts(records)

    stats = []
    for i, stage in enumerate(STAGE_ORDER):
        count = counts[i]

        if total == 0:
            percent_of_total = 0.0
        elif i == 0:
            percent_of_total = 100.0
        else:
            percent_of_total = round_percent(count / total * 100)

        if i == 0:
            percent_of_previous = None
        elif counts[i - 1] > 0:
            percent_of_previous = round_percent(count / counts[i - 1] * 100)
        else:
            percent_of_previous = 0.0

        stats.append(StageStat(
            stage=stage,
            count=count,
            percent_of_total=percent_of_total,
            percent_of_previous=percent_of_previous,
        ))

    return stats


def build_report(records: Sequence[Any], date_range: Optional[DateRange] = None) -> FunnelReport:
    """Filter records by date_range, then compute the funnel"""
    date_range = date_range or DateRange()
    filtered = filter_by_date(records, date_range)
    return FunnelReport(total=len(filtered), stages=compute_funnel(filtered), date_range=date_range)


def bar_height(
    count: int,
    max_count: int,
    min_height: float = BAR_MIN_HEIGHT,
    max_height: float = BAR_MAX_HEIGHT,
) -> float:
    """
    Height of a stage bar.

    0 -> no bar, 1 -> the minimum height, otherwise proportional to
    count / max_count but never below the minimum.
    """
    if count <= 0:
        return 0
    if count == 1:
        return min_height
    return max(min_height, count / max(max_count, 1) * max_height)


def funnel_chart(
    stats: Sequence[StageStat],
    min_height: float = BAR_MIN_HEIGHT,
    max_height: float = BAR_MAX_HEIGHT,
) -> List[tuple]:
    """(stage, count, height) rows for bar-chart renderers"""
    max_count = max([s.count for s in stats] + [1])
    return [
        (s.stage, s.count, bar_height(s.count, max_count, min_height, max_height))
        for s in stats
    ]
