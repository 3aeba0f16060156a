"""Filtering, visibility split and pagination of the in-memory article list."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from ..models import NO_TAGS, Article, FilterState, SectorGroup
from .labels import HIDDEN_TAG_NAME, is_health_sector

SEARCH_FIELDS = ("title", "company", "why_this_matters", "outreach_angle", "additional_details")


def matches_search(article: Article, search: str) -> bool:
    needle = search.strip().lower()
    if not needle:
        return True
    for field in SEARCH_FIELDS:
        value = getattr(article, field) or ""
        if needle in value.lower():
            return True
    return False


def matches_score(article: Article, min_score, max_score) -> bool:
    if min_score is None and max_score is None:
        return True
    score = article.lead_score
    if score is None:
        return False
    if min_score is not None and score < min_score:
        return False
    if max_score is not None and score > max_score:
        return False
    return True


def _intersects(values: Iterable[str], wanted: Sequence[str]) -> bool:
    if not wanted:
        return True
    wanted_set = set(wanted)
    return any(v in wanted_set for v in values)


def matches_tags(article: Article, tag_ids: Sequence[str]) -> bool:
    """NO_TAGS and real ids are OR-ed within this one dimension."""
    if not tag_ids:
        return True
    if NO_TAGS in tag_ids and not article.tags:
        return True
    real_ids = {t for t in tag_ids if t != NO_TAGS}
    return any(tag.id in real_ids for tag in article.tags)


def matches(article: Article, filters: FilterState) -> bool:
    """True when the article satisfies every active predicate."""
    if not matches_search(article, filters.search):
        return False
    if not matches_score(article, filters.min_score, filters.max_score):
        return False
    if not _intersects(article.sector, filters.sectors):
        return False
    if filters.sector_group == SectorGroup.OTHERS and any(is_health_sector(s) for s in article.sector):
        return False
    if not _intersects(article.trigger_signal, filters.triggers):
        return False
    if filters.sources and article.source not in filters.sources:
        return False
    if filters.groups and article.group_name not in filters.groups:
        return False
    if filters.country and article.location_country != filters.country:
        return False
    return matches_tags(article, filters.tag_ids)


def apply_filters(articles: Iterable[Article], filters: FilterState) -> list[Article]:
    """Return the matching articles in their original relative order."""
    return [a for a in articles if matches(a, filters)]


def is_hidden(article: Article) -> bool:
    return article.has_tag_named(HIDDEN_TAG_NAME)


def split_by_visibility(articles: Iterable[Article]) -> tuple[list[Article], list[Article]]:
    """Split into (active, hidden); hidden = tagged "not relevant"."""
    active: list[Article] = []
    hidden: list[Article] = []
    for article in articles:
        (hidden if is_hidden(article) else active).append(article)
    return active, hidden


@dataclass
class Page:
    items: list[Article]
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


def paginate(articles: Sequence[Article], page: int, page_size: int = 20) -> Page:
    """Zero-based page slice; out-of-range pages come back empty."""
    page = max(page, 0)
    start = page * page_size
    return Page(
        items=list(articles[start:start + page_size]),
        page=page,
        page_size=page_size,
        total=len(articles),
    )
