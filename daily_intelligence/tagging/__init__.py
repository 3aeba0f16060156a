"""Shared article cache and the optimistic tag mutation coordinator."""

from .cache import ArticleCache
from .coordinator import MutationOutcome, MutationState, TagMutationCoordinator, mutation_key

__all__ = [
    "ArticleCache",
    "MutationOutcome",
    "MutationState",
    "TagMutationCoordinator",
    "mutation_key",
]
