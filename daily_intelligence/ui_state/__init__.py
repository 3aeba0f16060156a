"""Root dashboard controller and its injected preference persistence."""

from .controller import AppState, DashboardController, DashboardView
from .preferences import InMemoryPreferencesStore, JsonFilePreferencesStore, PreferencesStore

__all__ = [
    "AppState",
    "DashboardController",
    "DashboardView",
    "InMemoryPreferencesStore",
    "JsonFilePreferencesStore",
    "PreferencesStore",
]
