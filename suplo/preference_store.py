from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from threading import RLock
from typing import Dict, Optional

from .logger_factory import get_logger


class PreferenceStore(ABC):
    """Per-user backend preference, keyed by Slack user id."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, user_id: str, backend: str) -> None:
        ...


class InMemoryPreferenceStore(PreferenceStore):
    """Process-wide map; lost on restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._prefs: Dict[str, str] = dict(initial or {})

    def get(self, user_id: str) -> Optional[str]:
        return self._prefs.get(user_id)

    def set(self, user_id: str, backend: str) -> None:
        self._prefs[user_id] = backend


class JsonFilePreferenceStore(PreferenceStore):
    """Preferences mirrored to a small JSON file so they survive restarts."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = RLock()
        self.log = get_logger("PreferenceStore")
        self._prefs: Dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.log.error(f"preference-store-load-error path={self.path} error={e}")
            return
        prefs = data.get("preferences", {}) if isinstance(data, dict) else {}
        self._prefs = {str(k): str(v) for k, v in prefs.items()}

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump({"preferences": self._prefs}, f, ensure_ascii=False, indent=2)
        tmp.replace(self.path)

    def get(self, user_id: str) -> Optional[str]:
        with self._lock:
            return self._prefs.get(user_id)

    def set(self, user_id: str, backend: str) -> None:
        with self._lock:
            self._prefs[user_id] = backend
            self._save()
