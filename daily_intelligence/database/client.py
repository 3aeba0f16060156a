"""Supabase database client for the dashboard.

The store owns articles, tags, the article_tags association and notes,
plus the RPCs used by the server-side paged query path. Every failure is
surfaced as ``StoreError``; transport errors on reads are retried first.
"""

import logging
import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional

import httpx
from postgrest.exceptions import APIError
from pydantic import ValidationError as PydanticValidationError
from supabase import Client, create_client
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..errors import StoreError
from ..models import Article, ArticleTag, FilterState, KPIStats, Note, Tag

logger = logging.getLogger(__name__)

ARTICLE_COLUMNS = """
    id,
    source,
    group_name,
    url,
    date,
    title,
    created_at,
    processed_at,
    updated_at,
    company,
    buyer,
    sector,
    amount,
    trigger_signal,
    solution,
    lead_score,
    why_this_matters,
    outreach_angle,
    additional_details,
    location_region,
    location_country,
    article_tags (
        tag:tags ( id, name, color, is_default )
    ),
    note:notes ( id, article_id, content, created_at, updated_at )
"""

ANALYTICS_COLUMNS = """
    id,
    source,
    group_name,
    processed_at,
    lead_score,
    trigger_signal,
    article_tags (
        tag:tags ( id, name, color, is_default )
    )
"""


def store_retry():
    """Retry decorator for store reads: 3 attempts, exponential backoff."""
    return retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(httpx.TransportError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except APIError as exc:
        message = exc.message or str(exc)
        logger.error("store_call action=%s result=failure code=%s error=%s", action, exc.code, message)
        raise StoreError(message, code=exc.code) from exc
    except httpx.HTTPError as exc:
        logger.error("store_call action=%s result=failure error=%s", action, exc)
        raise StoreError(f"Network error during {action}: {exc}") from exc


def flatten_article_row(row: Mapping[str, Any]) -> Article:
    """Map a store row with nested ``article_tags: [{tag: {...}}]`` to an Article.

    Association rows whose tag is missing (deleted tag, RLS) are dropped;
    an embedded ``note`` list is collapsed to its single row.

    Raises:
        pydantic.ValidationError: if the row does not fit the Article model.
    """
    data = dict(row)
    links = data.pop("article_tags", None) or []
    tags = []
    for link in links:
        tag = link.get("tag") if isinstance(link, Mapping) else None
        if tag:
            tags.append(Tag.model_validate(tag))
    data["tags"] = tags

    # One-to-one embeds come back as a list unless the FK is declared unique
    note = data.get("note")
    if isinstance(note, list):
        data["note"] = note[0] if note else None
    return Article.model_validate(data)


def _scalar_list(data: Optional[List[Any]]) -> List[str]:
    """RPCs returning ``setof text`` come back as bare values or one-key rows."""
    values = []
    for item in data or []:
        if isinstance(item, Mapping):
            item = next(iter(item.values()), None)
        if item:
            values.append(str(item))
    return values


class SupabaseClient:
    """Client for the articles, tags, article_tags and notes tables."""

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
    ) -> None:
        """Initialize Supabase client from explicit args or env vars.

        Args:
            url: Supabase project URL (falls back to SUPABASE_URL env var).
            key: Supabase key (falls back to SUPABASE_KEY env var).
        """
        self._url = url or os.environ["SUPABASE_URL"]
        self._key = key or os.environ["SUPABASE_KEY"]
        self._client: Client = create_client(self._url, self._key)
        # Auth-only client; sign-in must not change the data client's auth header
        self._auth_client: Client = create_client(self._url, self._key)

    # ------------------------------------------------------------------
    # Execution helpers
    # ------------------------------------------------------------------

    def _read(self, action: str, query) -> Any:
        with _translate_errors(action):
            return store_retry()(query.execute)()

    def _write(self, action: str, query) -> Any:
        with _translate_errors(action):
            return query.execute()

    # ------------------------------------------------------------------
    # Bulk reads
    # ------------------------------------------------------------------

    def _to_articles(self, rows: List[Dict[str, Any]]) -> List[Article]:
        articles = []
        for row in rows:
            try:
                articles.append(flatten_article_row(row))
            except PydanticValidationError as exc:
                logger.warning("Skipping malformed article row %s: %s", row.get("id"), exc)
        return articles

    def fetch_processed_articles(self) -> List[Article]:
        """Return every processed article with its tags, newest ingestion first."""
        response = self._read(
            "fetch articles",
            self._client.table("articles")
            .select(ARTICLE_COLUMNS)
            .eq("status", "processed")
            .order("created_at", desc=True),
        )
        return self._to_articles(response.data or [])

    def fetch_analytics_articles(self) -> List[Article]:
        """Return the minimal article fields the analytics views need."""
        response = self._read(
            "fetch analytics articles",
            self._client.table("articles")
            .select(ANALYTICS_COLUMNS)
            .eq("status", "processed")
            .order("processed_at", desc=True),
        )
        return self._to_articles(response.data or [])

    def fetch_tags(self) -> List[Tag]:
        response = self._read(
            "fetch tags",
            self._client.table("tags").select("*").order("name"),
        )
        return [Tag.model_validate(row) for row in response.data or []]

    # ------------------------------------------------------------------
    # Article <-> tag association
    # ------------------------------------------------------------------

    def add_article_tag(self, article_id: str, tag_id: str) -> ArticleTag:
        response = self._write(
            "add article tag",
            self._client.table("article_tags").insert({"article_id": article_id, "tag_id": tag_id}),
        )
        logger.info("Tagged article %s with %s", article_id, tag_id)
        row = response.data[0] if response.data else {"article_id": article_id, "tag_id": tag_id}
        return ArticleTag.model_validate(row)

    def remove_article_tag(self, article_id: str, tag_id: str) -> None:
        self._write(
            "remove article tag",
            self._client.table("article_tags").delete().match({"article_id": article_id, "tag_id": tag_id}),
        )
        logger.info("Removed tag %s from article %s", tag_id, article_id)

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def create_tag(self, name: str, color: str) -> Tag:
        response = self._write(
            "create tag",
            self._client.table("tags").insert({"name": name, "color": color}),
        )
        if not response.data:
            raise StoreError("Tag insert returned no row")
        logger.info("Created tag '%s'", name)
        return Tag.model_validate(response.data[0])

    def update_tag(self, tag_id: str, name: str, color: str) -> Tag:
        response = self._write(
            "update tag",
            self._client.table("tags").update({"name": name, "color": color}).eq("id", tag_id),
        )
        if not response.data:
            raise StoreError(f"Tag {tag_id} not found")
        logger.info("Updated tag %s to '%s'", tag_id, name)
        return Tag.model_validate(response.data[0])

    def delete_tag(self, tag_id: str) -> None:
        self._write("delete tag", self._client.table("tags").delete().eq("id", tag_id))
        logger.info("Deleted tag %s", tag_id)

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def get_note(self, article_id: str) -> Optional[Note]:
        response = self._read(
            "fetch note",
            self._client.table("notes").select("*").eq("article_id", article_id).limit(1),
        )
        return Note.model_validate(response.data[0]) if response.data else None

    def create_note(self, article_id: str, content: str) -> Note:
        response = self._write(
            "create note",
            self._client.table("notes").insert({"article_id": article_id, "content": content}),
        )
        if not response.data:
            raise StoreError("Note insert returned no row")
        logger.info("Created note for article %s", article_id)
        return Note.model_validate(response.data[0])

    def update_note(self, note_id: str, content: str) -> Note:
        response = self._write(
            "update note",
            self._client.table("notes").update({"content": content}).eq("id", note_id),
        )
        if not response.data:
            raise StoreError(f"Note {note_id} not found")
        return Note.model_validate(response.data[0])

    def delete_note(self, note_id: str) -> None:
        self._write("delete note", self._client.table("notes").delete().eq("id", note_id))
        logger.info("Deleted note %s", note_id)

    # ------------------------------------------------------------------
    # RPCs (server-computed path)
    # ------------------------------------------------------------------

    @staticmethod
    def _filter_params(filters: FilterState) -> Dict[str, Any]:
        return {
            "p_search": filters.search.strip() or None,
            "p_min_score": filters.min_score,
            "p_max_score": filters.max_score,
            "p_sectors": filters.sectors or None,
            "p_triggers": filters.triggers or None,
            "p_groups": filters.groups or None,
            "p_country": filters.country or None,
            "p_tag_ids": filters.tag_ids or None,
        }

    def search_articles(self, filters: FilterState, page: int = 0, page_size: int = 20) -> List[Article]:
        params = {"p_page": page, "p_page_size": page_size, **self._filter_params(filters)}
        response = self._read("search articles", self._client.rpc("get_articles_with_tags", params))
        return self._to_articles(response.data or [])

    def count_filtered_articles(self, filters: FilterState) -> int:
        response = self._read(
            "count articles",
            self._client.rpc("count_filtered_articles", self._filter_params(filters)),
        )
        return int(response.data or 0)

    def distinct_filter_options(self) -> Dict[str, List[str]]:
        options = {}
        for key, fn in (
            ("sectors", "get_distinct_sectors"),
            ("triggers", "get_distinct_triggers"),
            ("countries", "get_distinct_countries"),
        ):
            response = self._read(f"distinct {key}", self._client.rpc(fn))
            options[key] = _scalar_list(response.data)
        return options

    def dashboard_kpis(self) -> KPIStats:
        response = self._read("dashboard kpis", self._client.rpc("get_dashboard_kpis"))
        rows = response.data or []
        return KPIStats.model_validate(rows[0]) if rows else KPIStats()

    # ------------------------------------------------------------------
    # Auth collaborator
    # ------------------------------------------------------------------

    def sign_in(self, email: str, password: str) -> Optional[Dict[str, Any]]:
        """Verify credentials with Supabase Auth.

        Returns:
            ``{"id", "email", "access_token"}`` or None when rejected.
        """
        try:
            response = self._auth_client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:
            logger.warning("Sign-in rejected for %s: %s", email, exc)
            return None
        if response.user is None or response.session is None:
            return None
        return {
            "id": str(response.user.id),
            "email": response.user.email or email,
            "access_token": response.session.access_token,
        }

    def sign_out(self) -> None:
        try:
            self._auth_client.auth.sign_out()
        except Exception as exc:
            logger.warning("Sign-out failed: %s", exc)
