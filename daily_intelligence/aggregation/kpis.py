"""KPI computation over the full article collection.

Day and week boundaries are taken in the timezone of ``now``: the day
starts at local midnight and the week on Monday at local midnight.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from ..models import Article, KPIStats, PercentChange

# Score at or above which an article counts as high priority
HIGH_PRIORITY_THRESHOLD = 7


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(moment: datetime) -> datetime:
    """Monday 00:00 of the week containing ``moment``."""
    return start_of_day(moment) - timedelta(days=moment.weekday())


def as_aware(moment: datetime, tz=None) -> datetime:
    """Naive timestamps from the store are UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz) if tz is not None else moment


def is_high_priority(article: Article, threshold: int = HIGH_PRIORITY_THRESHOLD) -> bool:
    return (article.lead_score or 0) >= threshold


def compute_kpis(
    articles: Iterable[Article],
    now: Optional[datetime] = None,
    threshold: int = HIGH_PRIORITY_THRESHOLD,
) -> KPIStats:
    """Compute the KPI snapshot.

    Buckets (half-open): today = [today_start, now), yesterday =
    [yesterday_start, today_start), week = [week_start, now), previous
    week = [week_start - 7d, week_start). Articles without a processed
    timestamp only count towards ``awaiting_review``.
    """
    now = as_aware(now or datetime.now().astimezone())
    today_start = start_of_day(now)
    yesterday_start = today_start - timedelta(days=1)
    week_start = start_of_week(now)
    prev_week_start = week_start - timedelta(days=7)

    stats = dict.fromkeys(KPIStats.model_fields, 0)
    for article in articles:
        if not article.tags:
            stats["awaiting_review"] += 1
        if article.processed_at is None:
            continue

        processed = as_aware(article.processed_at, now.tzinfo)
        high = is_high_priority(article, threshold)

        if today_start <= processed < now:
            stats["total_today"] += 1
            stats["high_priority_today"] += high
        elif yesterday_start <= processed < today_start:
            stats["total_yesterday"] += 1
            stats["high_priority_yesterday"] += high

        if week_start <= processed < now:
            stats["weekly_added"] += 1
            stats["weekly_high_priority"] += high
        elif prev_week_start <= processed < week_start:
            stats["weekly_added_previous"] += 1

    return KPIStats(**stats)


def percent_change(current: int, previous: int) -> PercentChange:
    if previous == 0:
        return PercentChange(percentage=100.0 if current > 0 else 0.0, is_increase=True)
    change = (current - previous) / previous * 100
    return PercentChange(percentage=abs(change), is_increase=change >= 0)


def share_of(part: int, total: int) -> int:
    """Whole-number percentage, halves rounded up."""
    if total <= 0:
        return 0
    return round_half_up(part / total * 100)


def round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)
