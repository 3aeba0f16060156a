"""Filter state manager: current selections plus derivation rules."""

from .manager import FilterStateManager, sectors_for_group

__all__ = ["FilterStateManager", "sectors_for_group"]
