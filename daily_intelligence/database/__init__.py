"""Supabase store boundary."""

from .client import SupabaseClient, flatten_article_row

__all__ = ["SupabaseClient", "flatten_article_row"]
