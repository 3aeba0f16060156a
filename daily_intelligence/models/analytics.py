"""Analytics output rows."""

from datetime import date
from typing import Optional
from pydantic import BaseModel


class CountRow(BaseModel):
    name: str
    value: int
    percentage: Optional[int] = None


class ScoreBucket(BaseModel):
    range: str
    count: int


class TimePoint(BaseModel):
    day: date
    label: str
    opportunities: int


class EngagementRow(BaseModel):
    name: str
    value: int
    color: str
    percentage: int = 0


class AnalyticsSnapshot(BaseModel):
    """Top-level numbers for the selected date range."""

    total: int = 0
    high_priority: int = 0
    actioned: int = 0
    new_today: int = 0


class AnalyticsSummary(BaseModel):
    snapshot: AnalyticsSnapshot
    by_group: list[CountRow]
    by_source: list[CountRow]
    triggers: list[CountRow]
    scores: list[ScoreBucket]
    engagement: list[EngagementRow]
    trend: list[TimePoint]
