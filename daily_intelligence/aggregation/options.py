"""Filter vocabularies derived from the bulk article dump."""

from typing import Iterable

from pydantic import BaseModel

from ..models import Article


class FilterOptions(BaseModel):
    sectors: list[str] = []
    triggers: list[str] = []
    countries: list[str] = []
    groups: list[str] = []
    sources: list[str] = []


def filter_options(articles: Iterable[Article]) -> FilterOptions:
    articles = list(articles)
    return FilterOptions(
        sectors=sorted({s for a in articles for s in a.sector if s}),
        triggers=sorted({t for a in articles for t in a.trigger_signal if t}),
        countries=sorted({a.location_country for a in articles if a.location_country}),
        groups=sorted({a.group_name for a in articles if a.group_name}),
        sources=sorted({a.source for a in articles if a.source}),
    )


def group_sources(articles: Iterable[Article]) -> dict[str, list[str]]:
    """Group id -> sorted distinct source names seen in that group."""
    mapping: dict[str, set[str]] = {}
    for article in articles:
        if article.group_name and article.source:
            mapping.setdefault(article.group_name, set()).add(article.source)
    return {group: sorted(sources) for group, sources in mapping.items()}
