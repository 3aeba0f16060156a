"""Pure aggregation engine: KPIs, filtering and analytics over an article list."""

from .analytics import (
    by_group,
    by_source,
    count_by,
    default_date_range,
    engagement_breakdown,
    filter_by_date_range,
    score_histogram,
    summarize,
    time_series,
    trigger_breakdown,
)
from .filters import Page, apply_filters, is_hidden, paginate, split_by_visibility
from .kpis import HIGH_PRIORITY_THRESHOLD, compute_kpis, percent_change
from .options import FilterOptions, filter_options, group_sources

__all__ = [
    "by_group",
    "by_source",
    "count_by",
    "default_date_range",
    "engagement_breakdown",
    "filter_by_date_range",
    "score_histogram",
    "summarize",
    "time_series",
    "trigger_breakdown",
    "Page",
    "apply_filters",
    "is_hidden",
    "paginate",
    "split_by_visibility",
    "HIGH_PRIORITY_THRESHOLD",
    "compute_kpis",
    "percent_change",
    "FilterOptions",
    "filter_options",
    "group_sources",
]
