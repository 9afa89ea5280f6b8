"""Analytics components: stages, date filtering and the application funnel"""

from .stages import Stage, STAGE_ORDER, DEFAULT_STAGE, stage_index, parse_stage
from .date_filter import DateRange, filter_by_date, coerce_date
from .funnel import (
    StageStat,
    FunnelReport,
    compute_funnel,
    cumulative_counts,
    build_report,
    round_percent,
    bar_height,
    funnel_chart,
)

__all__ = [
    # Stages
    "Stage",
    "STAGE_ORDER",
    "DEFAULT_STAGE",
    "stage_index",
    "parse_stage",
    # Date filtering
    "DateRange",
    "filter_by_date",
    "coerce_date",
    # Funnel
    "StageStat",
    "FunnelReport",
    "compute_funnel",
    "cumulative_counts",
    "build_report",
    "round_percent",
    "bar_height",
    "funnel_chart",
]
