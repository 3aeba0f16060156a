"""Tests for FilterStateManager derivation rules."""

import pytest

from daily_intelligence.errors import ValidationError
from daily_intelligence.filter_state import FilterStateManager, sectors_for_group
from daily_intelligence.models import FilterState, SectorGroup

VOCABULARY = ["Digital Health", "Fintech", "MedTech", "Retail"]
GROUP_SOURCES = {"1": ["nhs", "tenders"], "2": ["crunchbase", "sifted"]}


@pytest.fixture
def manager():
    return FilterStateManager(sector_vocabulary=VOCABULARY, group_sources=GROUP_SOURCES)


# ---------------------------------------------------------------------------
# Sector groups
# ---------------------------------------------------------------------------


class TestSectorGroup:
    def test_health_selects_health_sectors(self, manager):
        state = manager.update_filters({"sectorGroup": "health"})
        assert state.sector_group == SectorGroup.HEALTH
        assert state.sectors == ["Digital Health", "MedTech"]

    def test_others_selects_remaining_sectors(self, manager):
        state = manager.update_filters({"sector_group": "others"})
        assert state.sectors == ["Fintech", "Retail"]

    def test_all_clears_sector_selection(self, manager):
        manager.update_filters({"sector_group": "health"})
        state = manager.update_filters({"sector_group": "all"})
        assert state.sectors == []
        assert state.sector_group == SectorGroup.ALL

    def test_direct_sector_selection_clears_group(self, manager):
        manager.update_filters({"sector_group": "health"})
        state = manager.update_filters({"sectors": ["Retail"]})
        assert state.sectors == ["Retail"]
        assert state.sector_group is None

    def test_sectors_for_group_helper(self):
        assert sectors_for_group(SectorGroup.ALL, VOCABULARY) == []


# ---------------------------------------------------------------------------
# Groups and sources
# ---------------------------------------------------------------------------


class TestGroupsAndSources:
    def test_groups_derive_sources(self, manager):
        state = manager.update_filters({"groups": ["1", "2"]})
        assert state.sources == ["crunchbase", "nhs", "sifted", "tenders"]

    def test_direct_sources_clear_groups(self, manager):
        manager.update_filters({"groups": ["1"]})
        state = manager.update_filters({"sources": ["sifted"]})
        assert state.groups == []
        assert state.sources == ["sifted"]

    def test_unknown_group_derives_nothing(self, manager):
        state = manager.update_filters({"groups": ["9"]})
        assert state.sources == []


# ---------------------------------------------------------------------------
# Updates, clearing and listeners
# ---------------------------------------------------------------------------


class TestUpdates:
    def test_partial_update_keeps_other_fields(self, manager):
        manager.update_filters({"search": "radiology"})
        state = manager.update_filters({"minScore": 7})
        assert state.search == "radiology"
        assert state.min_score == 7

    def test_clear_restores_defaults(self, manager):
        manager.update_filters({"search": "x", "tagIds": ["t1"], "groups": ["1"]})
        state = manager.clear()
        assert state == FilterState.cleared()
        assert not state.has_active_filters()

    def test_unknown_field_is_rejected(self, manager):
        with pytest.raises(ValidationError) as exc_info:
            manager.update_filters({"colour": "red"})
        assert exc_info.value.field == "colour"

    def test_wrong_type_is_rejected(self, manager):
        with pytest.raises(ValidationError) as exc_info:
            manager.update_filters({"min_score": "lots"})
        assert exc_info.value.field == "min_score"
        assert manager.state == FilterState()

    def test_listeners_fire_once_per_effective_change(self, manager):
        seen = []
        unsubscribe = manager.subscribe(lambda old, new: seen.append((old, new)))

        manager.update_filters({"search": "ai"})
        manager.update_filters({"search": "ai"})
        unsubscribe()
        manager.update_filters({"search": "ml"})

        assert len(seen) == 1
        assert seen[0][1].search == "ai"

    def test_set_vocabulary_applies_to_later_updates(self, manager):
        manager.set_vocabulary(["Healthcare", "Energy"], {})
        state = manager.update_filters({"sector_group": "health"})
        assert state.sectors == ["Healthcare"]
