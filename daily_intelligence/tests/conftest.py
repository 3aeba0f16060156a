"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from daily_intelligence.models import Article, Note, Tag


# Wednesday 2024-06-12 15:00 UTC
NOW = datetime(2024, 6, 12, 15, 0, tzinfo=timezone.utc)


def make_article(article_id: str = "a1", **overrides) -> Article:
    """Article with sensible defaults; override any field by keyword."""
    data = {
        "id": article_id,
        "source": "nhs_supply_chain",
        "group_name": "1",
        "url": f"https://example.com/{article_id}",
        "title": f"Article {article_id}",
        "company": "Acme Health",
        "buyer": "NHS Trust",
        "sector": ["Healthcare"],
        "trigger_signal": ["Contract award"],
        "lead_score": 7,
        "processed_at": NOW - timedelta(hours=1),
        "created_at": NOW - timedelta(hours=2),
    }
    data.update(overrides)
    return Article(**data)


def make_tag(tag_id: str = "t1", name: str = "Follow up", is_default: bool = False, color: str = "#22C55E") -> Tag:
    return Tag(id=tag_id, name=name, color=color, is_default=is_default)


class FakeStore:
    """In-memory stand-in for SupabaseClient used by coordinator and controller tests."""

    def __init__(self, articles=None, tags=None):
        self.articles = list(articles or [])
        self.tags = list(tags or [])
        self.calls = []
        self.fail_with = None
        self.fetch_count = 0

    def fetch_processed_articles(self):
        self.fetch_count += 1
        return list(self.articles)

    def fetch_analytics_articles(self):
        return list(self.articles)

    def fetch_tags(self):
        return list(self.tags)

    def add_article_tag(self, article_id, tag_id):
        self.calls.append(("add", article_id, tag_id))
        if self.fail_with is not None:
            raise self.fail_with

    def remove_article_tag(self, article_id, tag_id):
        self.calls.append(("remove", article_id, tag_id))
        if self.fail_with is not None:
            raise self.fail_with


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def follow_up_tag():
    return make_tag("t1", "Follow up")


@pytest.fixture
def not_relevant_tag():
    return make_tag("t-nr", "Not Relevant", is_default=True, color="#EF4444")


@pytest.fixture
def sample_note():
    return Note(id="n1", article_id="a1", content="Called the buyer")


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def mock_store():
    """MagicMock with the SupabaseClient surface the HTTP layer uses."""
    store = MagicMock()
    store.fetch_processed_articles.return_value = []
    store.fetch_analytics_articles.return_value = []
    store.fetch_tags.return_value = []
    store.sign_in.return_value = {"id": "user-1", "email": "ops@example.com", "access_token": "tok"}
    return store
