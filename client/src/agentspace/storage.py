"""Durable key/value storage for client state.

Registries receive a ``KeyValueStore`` instead of touching files directly.
Every operation is best-effort: failures are logged and degrade to defaults.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

# Well-known keys
TOKEN_KEY = "agentspace_token"
LAST_PROJECT_KEY = "lastUsedProjectId"
ONBOARDING_COMPLETED_KEY = "onboarding_completed_steps"
ONBOARDING_DISMISSED_KEY = "onboarding_dismissed_steps"
AGENT_DRAFT_KEY_PREFIX = "admin_agent_draft_"
AGENT_FILTERS_KEY = "admin_agent_filters"
AGENT_SORT_KEY = "admin_agent_sort"


class KeyValueStore(Protocol):
    """Persistence port used by the registries."""

    def get(self, key: str, default: str | None = None) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """In-process store; state is lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._data.get(key, default)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Store backed by a single JSON object on disk.

    The file is re-read on every ``get`` so that writes made by another
    process (for example a login performed elsewhere) are picked up.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning(f"Could not read {self.path}: {e}")
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring malformed storage file {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring storage file {self.path}: expected an object")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.warning(f"Could not write {self.path}: {e}")

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._read().get(key, default)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


def create_store(path: str | None) -> KeyValueStore:
    """Build the store for a configured path; empty means in-memory."""
    if path:
        return JsonFileStore(Path(path).expanduser())
    return MemoryStore()
