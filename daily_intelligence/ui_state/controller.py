"""DashboardController - root owner of one user's dashboard state.

Owns the article cache, the filter state manager, the tag mutation
coordinator and the UI state (page number, sidebar flag). Filter changes
reset the page; article reloads refresh the filter vocabularies.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel

from ..aggregation import (
    apply_filters,
    filter_options,
    group_sources,
    paginate,
    split_by_visibility,
)
from ..export import export_to_bytes
from ..filter_state import FilterStateManager
from ..models import Article, FilterState, KPIStats, Note, Tag
from ..tagging import ArticleCache, MutationOutcome, TagMutationCoordinator
from .preferences import PreferencesStore

logger = logging.getLogger(__name__)

PERSISTED_FIELDS = {"sidebar_collapsed"}


class AppState(BaseModel):
    sidebar_collapsed: bool = True
    page: int = 0


class DashboardView(BaseModel):
    """One rendered page of the active (or hidden) view."""

    articles: list[Article]
    total: int
    page: int
    page_size: int
    total_pages: int
    hidden_count: int
    kpis: KPIStats
    filters: FilterState


class DashboardController:
    def __init__(
        self,
        store,
        preferences: PreferencesStore,
        page_size: int = 20,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._preferences = preferences
        self.page_size = page_size
        self.cache = ArticleCache(clock)
        self.filters = FilterStateManager()
        self.coordinator = TagMutationCoordinator(store, self.cache)

        saved = {k: v for k, v in preferences.load().items() if k in PERSISTED_FIELDS}
        self.state = AppState(**saved)

        self.filters.subscribe(lambda old, new: self.set_page(0))
        self.cache.subscribe(self._refresh_vocabulary)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Bulk fetch articles and tags and replace the cache."""
        articles, tags = await asyncio.gather(
            asyncio.to_thread(self._store.fetch_processed_articles),
            asyncio.to_thread(self._store.fetch_tags),
        )
        self.cache.replace_tags(tags)
        self.cache.replace(articles)
        logger.info("Dashboard loaded: %d articles, %d tags", len(articles), len(tags))

    async def ensure_loaded(self) -> None:
        if not self.cache.loaded:
            await self.load()

    def _refresh_vocabulary(self, articles) -> None:
        self.filters.set_vocabulary(filter_options(articles).sectors, group_sources(articles))

    # ------------------------------------------------------------------
    # UI state
    # ------------------------------------------------------------------

    def set_page(self, page: int) -> None:
        self.state = self.state.model_copy(update={"page": max(page, 0)})

    def set_sidebar_collapsed(self, collapsed: bool) -> AppState:
        if collapsed != self.state.sidebar_collapsed:
            self.state = self.state.model_copy(update={"sidebar_collapsed": collapsed})
            self._preferences.save(self.state.model_dump(include=PERSISTED_FIELDS))
        return self.state

    def toggle_sidebar(self) -> AppState:
        return self.set_sidebar_collapsed(not self.state.sidebar_collapsed)

    # ------------------------------------------------------------------
    # Filters and views
    # ------------------------------------------------------------------

    def update_filters(self, partial: Mapping[str, Any]) -> FilterState:
        return self.filters.update_filters(partial)

    def clear_filters(self) -> FilterState:
        return self.filters.clear()

    def filtered(self, hidden: bool = False) -> list[Article]:
        active, hidden_articles = split_by_visibility(self.cache.articles)
        return apply_filters(hidden_articles if hidden else active, self.filters.state)

    def view(self, hidden: bool = False, page: Optional[int] = None) -> DashboardView:
        if page is not None:
            self.set_page(page)
        active, hidden_articles = split_by_visibility(self.cache.articles)
        matching = apply_filters(hidden_articles if hidden else active, self.filters.state)
        sliced = paginate(matching, self.state.page, self.page_size)
        return DashboardView(
            articles=sliced.items,
            total=sliced.total,
            page=sliced.page,
            page_size=sliced.page_size,
            total_pages=sliced.total_pages,
            hidden_count=len(hidden_articles),
            kpis=self.cache.kpis,
            filters=self.filters.state,
        )

    def export(self, hidden: bool = False, group_mapping: Optional[Mapping[str, str]] = None) -> bytes:
        """Spreadsheet of every article in the current filtered view (no paging)."""
        return export_to_bytes(self.filtered(hidden), group_mapping)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_tag(self, article_id: str, tag_id: str) -> MutationOutcome:
        return await self.coordinator.add_tag(article_id, tag_id)

    async def remove_tag(self, article_id: str, tag_id: str) -> MutationOutcome:
        return await self.coordinator.remove_tag(article_id, tag_id)

    def tag_saved(self, tag: Tag) -> None:
        self.cache.apply_tag_upsert(tag)

    def tag_deleted(self, tag_id: str) -> None:
        self.cache.apply_tag_delete(tag_id)

    def note_saved(self, note: Note) -> None:
        self.cache.set_note(note.article_id, note)

    def note_deleted(self, note_id: str) -> None:
        for article in self.cache.articles:
            if article.note is not None and article.note.id == note_id:
                self.cache.set_note(article.id, None)
                return
