"""ArticleCache - the single in-memory article collection read by every view.

Writers never mutate an article in place: each write builds a new tuple
and swaps it in, then recomputes the KPI snapshot from it.
"""

import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from ..aggregation import compute_kpis
from ..models import Article, KPIStats, Tag

logger = logging.getLogger(__name__)

Listener = Callable[[tuple], None]


class ArticleCache:
    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._articles: tuple[Article, ...] = ()
        self._tags: tuple[Tag, ...] = ()
        self._kpis = KPIStats()
        self._clock = clock or (lambda: datetime.now().astimezone())
        self._listeners: list[Listener] = []
        self.loaded = False

    @property
    def articles(self) -> tuple[Article, ...]:
        return self._articles

    @property
    def tags(self) -> tuple[Tag, ...]:
        return self._tags

    @property
    def kpis(self) -> KPIStats:
        return self._kpis

    def subscribe(self, listener: Listener) -> None:
        """Called with the new collection after every replacement."""
        self._listeners.append(listener)

    def get_article(self, article_id: str) -> Optional[Article]:
        return next((a for a in self._articles if a.id == article_id), None)

    def get_tag(self, tag_id: str) -> Optional[Tag]:
        return next((t for t in self._tags if t.id == tag_id), None)

    # ------------------------------------------------------------------
    # Full-collection writes
    # ------------------------------------------------------------------

    def replace(self, articles: Iterable[Article]) -> None:
        snapshot = tuple(articles)
        kpis = compute_kpis(snapshot, self._clock())
        self._articles, self._kpis = snapshot, kpis
        self.loaded = True
        logger.debug("Article cache replaced: %d articles", len(snapshot))
        for listener in list(self._listeners):
            listener(snapshot)

    def replace_tags(self, tags: Iterable[Tag]) -> None:
        self._tags = tuple(tags)

    def _replace_article(self, article_id: str, update: Callable[[Article], Article]) -> bool:
        found = False
        rebuilt = []
        for article in self._articles:
            if article.id == article_id:
                found = True
                article = update(article)
            rebuilt.append(article)
        if found:
            self.replace(rebuilt)
        return found

    def add_tag_to_article(self, article_id: str, tag: Tag) -> bool:
        """Returns False when the article is not cached."""
        def _add(article: Article) -> Article:
            if any(t.id == tag.id for t in article.tags):
                return article
            return article.model_copy(update={"tags": [*article.tags, tag]})

        return self._replace_article(article_id, _add)

    def remove_tag_from_article(self, article_id: str, tag_id: str) -> bool:
        return self._replace_article(
            article_id,
            lambda a: a.model_copy(update={"tags": [t for t in a.tags if t.id != tag_id]}),
        )

    # ------------------------------------------------------------------
    # Tag catalogue changes, reflected on every cached article
    # ------------------------------------------------------------------

    def apply_tag_upsert(self, tag: Tag) -> None:
        if any(t.id == tag.id for t in self._tags):
            self._tags = tuple(tag if t.id == tag.id else t for t in self._tags)
        else:
            self._tags = tuple(sorted((*self._tags, tag), key=lambda t: t.name))

        if any(t.id == tag.id for a in self._articles for t in a.tags):
            self.replace(
                a.model_copy(update={"tags": [tag if t.id == tag.id else t for t in a.tags]})
                for a in self._articles
            )

    def apply_tag_delete(self, tag_id: str) -> None:
        self._tags = tuple(t for t in self._tags if t.id != tag_id)
        if any(t.id == tag_id for a in self._articles for t in a.tags):
            self.replace(
                a.model_copy(update={"tags": [t for t in a.tags if t.id != tag_id]})
                for a in self._articles
            )

    def set_note(self, article_id: str, note) -> bool:
        """Attach (or with None, detach) the article's note."""
        return self._replace_article(article_id, lambda a: a.model_copy(update={"note": note}))
