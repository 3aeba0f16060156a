"""TagMutationCoordinator - optimistic add/remove of article tags.

Each ``article_id:tag_id`` key moves through
``IDLE -> PENDING -> (RECONCILING) -> SETTLED``, after which the key is
forgotten and reads as IDLE again. A second request for a key that is
PENDING or RECONCILING is dropped. On success the cached
article is updated without a refetch; on failure the whole collection is
reloaded from the store rather than patched back by hand.
"""

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass
from enum import Enum

from ..errors import StoreError
from .cache import ArticleCache

logger = logging.getLogger(__name__)


class MutationState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    RECONCILING = "reconciling"
    SETTLED = "settled"


class MutationOutcome(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class MutationRecord:
    action: str
    attempt_id: int
    state: MutationState = MutationState.PENDING


def mutation_key(article_id: str, tag_id: str) -> str:
    return f"{article_id}:{tag_id}"


class TagMutationCoordinator:
    """Serializes tag mutations per (article, tag) pair against the store.

    ``store`` is a SupabaseClient (or anything with the same
    add/remove/fetch methods); its blocking calls run in a worker thread.
    """

    def __init__(self, store, cache: ArticleCache) -> None:
        self._store = store
        self._cache = cache
        self._records: dict[str, MutationRecord] = {}
        self._attempts = itertools.count(1)

    def state_of(self, article_id: str, tag_id: str) -> MutationState:
        record = self._records.get(mutation_key(article_id, tag_id))
        return record.state if record else MutationState.IDLE

    def is_in_flight(self, article_id: str, tag_id: str) -> bool:
        return self.state_of(article_id, tag_id) in (MutationState.PENDING, MutationState.RECONCILING)

    async def add_tag(self, article_id: str, tag_id: str) -> MutationOutcome:
        return await self._mutate("add", article_id, tag_id)

    async def remove_tag(self, article_id: str, tag_id: str) -> MutationOutcome:
        return await self._mutate("remove", article_id, tag_id)

    async def reload(self) -> bool:
        """Replace the cache with a fresh copy from the store."""
        try:
            articles = await asyncio.to_thread(self._store.fetch_processed_articles)
        except StoreError as exc:
            logger.error("Reconciliation reload failed, keeping cached view: %s", exc)
            return False
        self._cache.replace(articles)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _mutate(self, action: str, article_id: str, tag_id: str) -> MutationOutcome:
        key = mutation_key(article_id, tag_id)
        if self.is_in_flight(article_id, tag_id):
            logger.info("mutation_complete key=%s action=%s result=skipped", key, action)
            return MutationOutcome.SKIPPED

        # Marked before the first await so concurrent callers see it
        record = MutationRecord(action=action, attempt_id=next(self._attempts))
        self._records[key] = record
        start = time.monotonic()
        try:
            try:
                if action == "add":
                    await asyncio.to_thread(self._store.add_article_tag, article_id, tag_id)
                else:
                    await asyncio.to_thread(self._store.remove_article_tag, article_id, tag_id)
            except StoreError as exc:
                record.state = MutationState.RECONCILING
                logger.error(
                    "mutation_complete key=%s action=%s attempt=%d result=failure error=%s duration_ms=%.0f",
                    key, action, record.attempt_id, exc, (time.monotonic() - start) * 1000,
                )
                await self.reload()
                return MutationOutcome.FAILED

            if not self._apply_locally(action, article_id, tag_id):
                await self.reload()
            logger.info(
                "mutation_complete key=%s action=%s attempt=%d result=success duration_ms=%.0f",
                key, action, record.attempt_id, (time.monotonic() - start) * 1000,
            )
            return MutationOutcome.APPLIED
        finally:
            record.state = MutationState.SETTLED
            if self._records.get(key) is record:
                del self._records[key]

    def _apply_locally(self, action: str, article_id: str, tag_id: str) -> bool:
        """Update the cached article; False when the cache cannot (unknown tag or article)."""
        if action == "remove":
            return self._cache.remove_tag_from_article(article_id, tag_id)
        tag = self._cache.get_tag(tag_id)
        if tag is None:
            return False
        return self._cache.add_tag_to_article(article_id, tag)
