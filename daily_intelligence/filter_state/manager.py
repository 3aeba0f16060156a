"""FilterStateManager - owns the current FilterState.

Every change goes through ``update_filters`` which merges the partial
update and then applies the derivation rules, in this order:

1. ``sector_group`` set to health / others / all derives ``sectors``
   from the full sector vocabulary.
2. ``sectors`` set directly (and not derived in the same call) clears
   ``sector_group``.
3. ``sources`` set directly without touching ``groups`` clears ``groups``.
4. Non-empty ``groups`` derive ``sources`` from the group -> sources
   mapping, skipped when the result is unchanged.

Listeners are notified once per effective change; the dashboard
controller uses this to reset pagination.
"""

import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..aggregation.labels import is_health_sector
from ..errors import ValidationError
from ..models import FilterState, SectorGroup

logger = logging.getLogger(__name__)

Listener = Callable[[FilterState, FilterState], None]

_FIELD_NAMES: dict[str, str] = {}
for _name in FilterState.model_fields:
    _FIELD_NAMES[_name] = _name
    _FIELD_NAMES[to_camel(_name)] = _name


def sectors_for_group(group: SectorGroup, vocabulary: Iterable[str]) -> list[str]:
    """Concrete sector labels selected by a sector group."""
    if group == SectorGroup.HEALTH:
        return [s for s in vocabulary if is_health_sector(s)]
    if group == SectorGroup.OTHERS:
        return [s for s in vocabulary if not is_health_sector(s)]
    return []


class FilterStateManager:
    """Holds the filter value object and derives dependent fields."""

    def __init__(
        self,
        initial: Optional[FilterState] = None,
        sector_vocabulary: Iterable[str] = (),
        group_sources: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> None:
        self._state = initial or FilterState()
        self._sector_vocabulary: list[str] = list(sector_vocabulary)
        self._group_sources: dict[str, list[str]] = {
            k: list(v) for k, v in (group_sources or {}).items()
        }
        self._listeners: list[Listener] = []

    @property
    def state(self) -> FilterState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe callable."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def set_vocabulary(
        self,
        sector_vocabulary: Iterable[str],
        group_sources: Mapping[str, Iterable[str]],
    ) -> None:
        """Replace the vocabularies used by the derivation rules."""
        self._sector_vocabulary = list(sector_vocabulary)
        self._group_sources = {k: list(v) for k, v in group_sources.items()}

    # ------------------------------------------------------------------
    # Mutation entry points
    # ------------------------------------------------------------------

    def update_filters(self, partial: Mapping[str, Any]) -> FilterState:
        """Merge ``partial`` into the current state and re-run derivations.

        Keys may be snake_case or camelCase.

        Raises:
            ValidationError: unknown key or a value of the wrong type.
        """
        changes = self._normalize(partial)
        merged = {**self._state.model_dump(), **changes}
        try:
            candidate = FilterState.model_validate(merged)
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            loc = [str(p) for p in first.get("loc", ())]
            field = _FIELD_NAMES.get(loc[0], loc[0]) if loc else None
            raise ValidationError(first.get("msg", "Invalid filter value"), field=field) from exc

        return self._commit(self._derive(candidate, changes))

    def clear(self) -> FilterState:
        """Reset every field to its default in one update."""
        return self._commit(FilterState.cleared())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _normalize(self, partial: Mapping[str, Any]) -> dict[str, Any]:
        changes = {}
        for key, value in partial.items():
            name = _FIELD_NAMES.get(key)
            if name is None:
                raise ValidationError(f"Unknown filter field: {key}", field=key)
            changes[name] = value
        return changes

    def _derive(self, state: FilterState, changes: Mapping[str, Any]) -> FilterState:
        sectors_derived = False
        if "sector_group" in changes and state.sector_group is not None:
            state = state.model_copy(
                update={"sectors": sectors_for_group(state.sector_group, self._sector_vocabulary)}
            )
            sectors_derived = True

        if "sectors" in changes and not sectors_derived:
            state = state.model_copy(update={"sector_group": None})

        if "sources" in changes and "groups" not in changes:
            state = state.model_copy(update={"groups": []})

        if state.groups:
            derived = sorted({src for g in state.groups for src in self._group_sources.get(g, [])})
            if derived != state.sources:
                state = state.model_copy(update={"sources": derived})

        return state

    def _commit(self, new_state: FilterState) -> FilterState:
        old_state = self._state
        if new_state == old_state:
            return old_state
        self._state = new_state
        logger.debug("Filters updated: %s", new_state.model_dump(exclude_defaults=True))
        for listener in list(self._listeners):
            listener(old_state, new_state)
        return new_state
