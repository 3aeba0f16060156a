"""Shared Pydantic models - contract between the store, engines and HTTP layer."""

from .article import Article, ArticleTag, Note, Tag
from .filters import DEFAULT_MAX_SCORE, DEFAULT_MIN_SCORE, NO_TAGS, FilterState, SectorGroup
from .kpi import KPIStats, PercentChange
from .analytics import (
    AnalyticsSnapshot,
    AnalyticsSummary,
    CountRow,
    EngagementRow,
    ScoreBucket,
    TimePoint,
)

__all__ = [
    "Article",
    "ArticleTag",
    "Note",
    "Tag",
    "FilterState",
    "SectorGroup",
    "NO_TAGS",
    "DEFAULT_MIN_SCORE",
    "DEFAULT_MAX_SCORE",
    "KPIStats",
    "PercentChange",
    "AnalyticsSnapshot",
    "AnalyticsSummary",
    "CountRow",
    "EngagementRow",
    "ScoreBucket",
    "TimePoint",
]
