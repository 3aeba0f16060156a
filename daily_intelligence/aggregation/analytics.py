"""Analytics breakdowns over a date-ranged slice of the article dump."""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from typing import Callable, Hashable, Iterable, Optional, TypeVar

from ..models import (
    AnalyticsSnapshot,
    AnalyticsSummary,
    Article,
    CountRow,
    EngagementRow,
    ScoreBucket,
    TimePoint,
)
from .kpis import as_aware, is_high_priority, share_of, start_of_day
from .labels import (
    COMPLETED_TAG_NAME,
    UNTAGGED_COLOR,
    UNTAGGED_NAME,
    group_display_name,
    normalize_source_name,
)

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)

MAX_SERIES_POINTS = 30
TOP_SOURCES = 10
TOP_TRIGGERS = 8

# (label, lowest score in bucket), highest bucket first
SCORE_BUCKETS = (("9-10", 9), ("7-8", 7), ("5-6", 5), ("3-4", 3), ("0-2", None))


def count_by(items: Iterable[T], key_fn: Callable[[T], K]) -> dict[K, int]:
    """Count items per derived key, most frequent first.

    Ties keep first-encountered order.
    """
    counts: dict[K, int] = {}
    for item in items:
        key = key_fn(item)
        counts[key] = counts.get(key, 0) + 1
    return dict(sorted(counts.items(), key=lambda kv: kv[1], reverse=True))


def by_group(articles: Iterable[Article], mapping: Optional[dict[str, str]] = None) -> list[CountRow]:
    counts = count_by(articles, lambda a: group_display_name(a.group_name, mapping))
    return [CountRow(name=k, value=v) for k, v in counts.items()]


def by_source(articles: Iterable[Article], limit: int = TOP_SOURCES) -> list[CountRow]:
    counts = count_by(articles, lambda a: normalize_source_name(a.source))
    return [CountRow(name=k, value=v) for k, v in list(counts.items())[:limit]]


def trigger_breakdown(articles: Iterable[Article], limit: int = TOP_TRIGGERS) -> list[CountRow]:
    """Top trigger signals; percentages are relative to all signal occurrences."""
    counts = count_by((t for a in articles for t in a.trigger_signal), lambda t: t)
    total = sum(counts.values())
    return [
        CountRow(name=k, value=v, percentage=share_of(v, total))
        for k, v in list(counts.items())[:limit]
    ]


def score_bucket_label(score: Optional[int]) -> str:
    score = score or 0
    for label, floor in SCORE_BUCKETS:
        if floor is None or score >= floor:
            return label
    return SCORE_BUCKETS[-1][0]


def score_histogram(articles: Iterable[Article]) -> list[ScoreBucket]:
    """Fixed five buckets; every article lands in exactly one."""
    counts = {label: 0 for label, _ in SCORE_BUCKETS}
    for article in articles:
        counts[score_bucket_label(article.lead_score)] += 1
    return [ScoreBucket(range=label, count=n) for label, n in counts.items()]


def default_date_range(now: Optional[datetime] = None, days: int = 30) -> tuple[datetime, datetime]:
    """Start of the day ``days`` ago to the end of today."""
    now = as_aware(now or datetime.now().astimezone())
    start = start_of_day(now - timedelta(days=days))
    end = start_of_day(now) + timedelta(days=1, microseconds=-1)
    return start, end


def filter_by_date_range(articles: Iterable[Article], start: datetime, end: datetime) -> list[Article]:
    """Articles processed within [start, end]; unprocessed ones are dropped."""
    start, end = as_aware(start), as_aware(end)
    return [
        a for a in articles
        if a.processed_at is not None and start <= as_aware(a.processed_at) <= end
    ]


def time_series(articles: Iterable[Article], start: datetime, end: datetime) -> list[TimePoint]:
    """One point per calendar day in [start, end], thinned to at most 30 points.

    Days are taken in the timezone of ``start``.
    """
    start = as_aware(start)
    tz = start.tzinfo
    end = as_aware(end, tz)

    per_day: dict[date, int] = {}
    for article in articles:
        if article.processed_at is None:
            continue
        day = as_aware(article.processed_at, tz).date()
        per_day[day] = per_day.get(day, 0) + 1

    first, last = start.date(), end.date()
    points = []
    day = first
    while day <= last:
        points.append(TimePoint(day=day, label=f"{day:%b} {day.day}", opportunities=per_day.get(day, 0)))
        day += timedelta(days=1)

    if len(points) > MAX_SERIES_POINTS:
        step = math.ceil(len(points) / MAX_SERIES_POINTS)
        points = points[::step]
    return points


def engagement_breakdown(articles: Iterable[Article]) -> list[EngagementRow]:
    """Articles per default tag (first default tag only) plus an Untagged bucket."""
    rows: dict[str, EngagementRow] = {}
    untagged = 0
    for article in articles:
        if not article.tags:
            untagged += 1
            continue
        default_tags = [t for t in article.tags if t.is_default]
        if not default_tags:
            continue
        tag = default_tags[0]
        key = tag.name.lower()
        if key in rows:
            rows[key].value += 1
        else:
            rows[key] = EngagementRow(name=tag.name, value=1, color=tag.color)

    result = list(rows.values())
    if untagged > 0 or not result:
        result.append(EngagementRow(name=UNTAGGED_NAME, value=untagged, color=UNTAGGED_COLOR))

    result.sort(key=lambda r: r.value, reverse=True)
    total = sum(r.value for r in result)
    for row in result:
        row.percentage = share_of(row.value, total)
    return result


def snapshot(articles: list[Article], now: Optional[datetime] = None) -> AnalyticsSnapshot:
    now = as_aware(now or datetime.now().astimezone())
    today_start = start_of_day(now)
    return AnalyticsSnapshot(
        total=len(articles),
        high_priority=sum(1 for a in articles if is_high_priority(a)),
        actioned=sum(1 for a in articles if a.has_tag_named(COMPLETED_TAG_NAME)),
        new_today=sum(
            1 for a in articles
            if a.processed_at is not None and as_aware(a.processed_at) >= today_start
        ),
    )


def summarize(
    articles: Iterable[Article],
    start: datetime,
    end: datetime,
    now: Optional[datetime] = None,
    group_mapping: Optional[dict[str, str]] = None,
) -> AnalyticsSummary:
    """Every analytics view for the [start, end] slice of the dump."""
    in_range = filter_by_date_range(articles, start, end)
    return AnalyticsSummary(
        snapshot=snapshot(in_range, now),
        by_group=by_group(in_range, group_mapping),
        by_source=by_source(in_range),
        triggers=trigger_breakdown(in_range),
        scores=score_histogram(in_range),
        engagement=engagement_breakdown(in_range),
        trend=time_series(in_range, start, end),
    )
