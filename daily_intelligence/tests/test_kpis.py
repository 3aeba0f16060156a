"""Tests for KPI computation."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from conftest import NOW, make_article, make_tag
from daily_intelligence.aggregation import compute_kpis, percent_change
from daily_intelligence.aggregation.kpis import round_half_up, share_of, start_of_week


# ---------------------------------------------------------------------------
# compute_kpis
# ---------------------------------------------------------------------------


class TestComputeKpis:
    def test_today_bucket_and_awaiting_review(self):
        articles = [
            make_article("a1", lead_score=9, processed_at=NOW - timedelta(hours=1)),
            make_article("a2", lead_score=6, processed_at=NOW - timedelta(hours=2)),
            make_article("a3", lead_score=2, processed_at=NOW - timedelta(hours=3)),
        ]

        stats = compute_kpis(articles, NOW)

        assert stats.total_today == 3
        assert stats.high_priority_today == 1
        assert stats.awaiting_review == 3

    def test_tagged_articles_are_not_awaiting_review(self):
        articles = [
            make_article("a1", tags=[make_tag()]),
            make_article("a2"),
        ]
        assert compute_kpis(articles, NOW).awaiting_review == 1

    def test_yesterday_bucket(self):
        yesterday = NOW - timedelta(days=1)
        articles = [
            make_article("a1", lead_score=8, processed_at=yesterday),
            make_article("a2", lead_score=3, processed_at=yesterday.replace(hour=0, minute=0)),
        ]

        stats = compute_kpis(articles, NOW)

        assert stats.total_today == 0
        assert stats.total_yesterday == 2
        assert stats.high_priority_yesterday == 1

    def test_week_buckets_start_on_monday(self):
        # NOW is Wednesday 2024-06-12; the week starts Monday 2024-06-10
        articles = [
            make_article("mon", processed_at=datetime(2024, 6, 10, 1, 0, tzinfo=timezone.utc)),
            make_article("sun", processed_at=datetime(2024, 6, 9, 23, 0, tzinfo=timezone.utc)),
            make_article("old", processed_at=datetime(2024, 6, 2, 12, 0, tzinfo=timezone.utc)),
        ]

        stats = compute_kpis(articles, NOW)

        assert stats.weekly_added == 1
        assert stats.weekly_high_priority == 1
        assert stats.weekly_added_previous == 1
        assert stats.total_yesterday == 0

    def test_future_timestamps_are_not_counted_as_today(self):
        articles = [make_article("a1", processed_at=NOW + timedelta(minutes=5))]

        stats = compute_kpis(articles, NOW)

        assert stats.total_today == 0
        assert stats.weekly_added == 0

    def test_missing_processed_timestamp_only_counts_as_awaiting(self):
        stats = compute_kpis([make_article("a1", processed_at=None)], NOW)

        assert stats.awaiting_review == 1
        assert stats.total_today == 0
        assert stats.total_yesterday == 0
        assert stats.weekly_added == 0

    def test_naive_timestamps_are_utc(self):
        naive = datetime(2024, 6, 12, 9, 0)
        stats = compute_kpis([make_article("a1", processed_at=naive)], NOW)
        assert stats.total_today == 1

    def test_day_boundary_follows_timezone_of_now(self):
        london = ZoneInfo("Europe/London")
        now = datetime(2024, 6, 12, 9, 0, tzinfo=london)
        # 00:30 local on the 12th, still the 11th in UTC
        processed = datetime(2024, 6, 11, 23, 30, tzinfo=timezone.utc)

        stats = compute_kpis([make_article("a1", processed_at=processed)], now)

        assert stats.total_today == 1
        assert stats.total_yesterday == 0

    def test_empty_collection(self):
        stats = compute_kpis([], NOW)
        assert stats.model_dump() == dict.fromkeys(stats.model_dump(), 0)

    def test_start_of_week(self):
        assert start_of_week(NOW) == datetime(2024, 6, 10, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Percentages
# ---------------------------------------------------------------------------


class TestPercentChange:
    @pytest.mark.parametrize(
        "current,previous,percentage,is_increase",
        [
            (10, 0, 100.0, True),
            (0, 0, 0.0, True),
            (5, 10, 50.0, False),
            (15, 10, 50.0, True),
        ],
    )
    def test_percent_change(self, current, previous, percentage, is_increase):
        change = percent_change(current, previous)
        assert change.percentage == pytest.approx(percentage)
        assert change.is_increase is is_increase


class TestShareOf:
    def test_rounds_half_up(self):
        assert share_of(1, 8) == 13
        assert round_half_up(2.5) == 3

    def test_zero_total(self):
        assert share_of(0, 0) == 0

    def test_thirds(self):
        assert share_of(1, 3) == 33
