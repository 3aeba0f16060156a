"""FilterState - value object held by the filter state manager."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

# Reserved tag id meaning "article has zero tags"
NO_TAGS = "NO_TAGS"

DEFAULT_MIN_SCORE = 5
DEFAULT_MAX_SCORE = 10


class SectorGroup(str, Enum):
    ALL = "all"
    HEALTH = "health"
    OTHERS = "others"


class FilterState(BaseModel):
    """Current filter selections.

    Multi-select fields have set semantics; they are kept as lists so the
    value serializes cleanly and keeps the order the user picked.
    Accepts both snake_case and the camelCase keys the UI sends.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    search: str = ""
    min_score: Optional[int] = DEFAULT_MIN_SCORE
    max_score: Optional[int] = DEFAULT_MAX_SCORE
    sector_group: Optional[SectorGroup] = SectorGroup.ALL
    sectors: list[str] = []
    triggers: list[str] = []
    sources: list[str] = []
    groups: list[str] = []
    tag_ids: list[str] = []
    country: Optional[str] = None

    @classmethod
    def cleared(cls) -> "FilterState":
        """The reset state: default score window, every selection empty."""
        return cls()

    def has_active_filters(self) -> bool:
        return self != FilterState.cleared()
