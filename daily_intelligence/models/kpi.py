"""KPI snapshot - derived from the full article collection, never persisted."""

from pydantic import BaseModel, Field


class KPIStats(BaseModel):
    total_today: int = Field(default=0, ge=0)
    total_yesterday: int = Field(default=0, ge=0)
    high_priority_today: int = Field(default=0, ge=0)
    high_priority_yesterday: int = Field(default=0, ge=0)
    awaiting_review: int = Field(default=0, ge=0)
    weekly_added: int = Field(default=0, ge=0)
    weekly_added_previous: int = Field(default=0, ge=0)
    weekly_high_priority: int = Field(default=0, ge=0)


class PercentChange(BaseModel):
    """Period-over-period change shown on KPI cards."""

    percentage: float
    is_increase: bool
