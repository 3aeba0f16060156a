"""Persistence strategies for per-user UI preferences."""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)


class PreferencesStore(ABC):
    """Load-on-init / save-on-change persistence for one user's preferences."""

    @abstractmethod
    def load(self) -> Dict[str, Any]:
        """Return saved preferences, or {} when nothing is saved."""
        pass

    @abstractmethod
    def save(self, data: Dict[str, Any]) -> None:
        pass


class InMemoryPreferencesStore(PreferencesStore):
    def __init__(self, initial: Dict[str, Any] = None) -> None:
        self.data: Dict[str, Any] = dict(initial or {})

    def load(self) -> Dict[str, Any]:
        return dict(self.data)

    def save(self, data: Dict[str, Any]) -> None:
        self.data = dict(data)


class JsonFilePreferencesStore(PreferencesStore):
    """Preferences for all users in one JSON file, keyed by ``namespace``."""

    def __init__(self, path: str, namespace: str = "default") -> None:
        self.path = Path(path)
        self.namespace = namespace

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable preferences file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> Dict[str, Any]:
        saved = self._read_all().get(self.namespace)
        return dict(saved) if isinstance(saved, dict) else {}

    def save(self, data: Dict[str, Any]) -> None:
        everything = self._read_all()
        everything[self.namespace] = data
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(everything, f, indent=2)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError):
            Path(tmp_path).unlink(missing_ok=True)
            raise
