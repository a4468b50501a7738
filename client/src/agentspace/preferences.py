"""Persisted UI preferences: onboarding progress, admin drafts, filters and sort."""

import json
import logging
from typing import Any

from agentspace.storage import (
    AGENT_DRAFT_KEY_PREFIX,
    AGENT_FILTERS_KEY,
    AGENT_SORT_KEY,
    ONBOARDING_COMPLETED_KEY,
    ONBOARDING_DISMISSED_KEY,
    KeyValueStore,
)

logger = logging.getLogger(__name__)


class Preferences:
    """JSON-valued preferences on top of a ``KeyValueStore``."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    def _load(self, key: str, default: Any) -> Any:
        raw = self._store.get(key)
        if raw is None:
            return default
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring malformed preference {key}")
            return default
        if not isinstance(value, type(default)):
            logger.warning(f"Ignoring preference {key} with unexpected type {type(value).__name__}")
            return default
        return value

    def _save(self, key: str, value: Any) -> None:
        self._store.set(key, json.dumps(value, ensure_ascii=False))

    # ============= Onboarding =============

    def completed_steps(self) -> set[str]:
        return set(self._load(ONBOARDING_COMPLETED_KEY, []))

    def mark_step_completed(self, step_id: str) -> None:
        steps = self.completed_steps()
        steps.add(step_id)
        self._save(ONBOARDING_COMPLETED_KEY, sorted(steps))

    def dismissed_steps(self) -> set[str]:
        return set(self._load(ONBOARDING_DISMISSED_KEY, []))

    def dismiss_step(self, step_id: str) -> None:
        steps = self.dismissed_steps()
        steps.add(step_id)
        self._save(ONBOARDING_DISMISSED_KEY, sorted(steps))

    def reset_onboarding(self) -> None:
        self._store.remove(ONBOARDING_COMPLETED_KEY)
        self._store.remove(ONBOARDING_DISMISSED_KEY)

    # ============= Admin agent drafts =============

    def load_agent_draft(self, agent_id: str) -> dict[str, Any] | None:
        draft = self._load(f"{AGENT_DRAFT_KEY_PREFIX}{agent_id}", {})
        return draft or None

    def save_agent_draft(self, agent_id: str, draft: dict[str, Any]) -> None:
        self._save(f"{AGENT_DRAFT_KEY_PREFIX}{agent_id}", draft)

    def discard_agent_draft(self, agent_id: str) -> None:
        self._store.remove(f"{AGENT_DRAFT_KEY_PREFIX}{agent_id}")

    # ============= Admin list view =============

    def filters(self) -> dict[str, Any]:
        return self._load(AGENT_FILTERS_KEY, {})

    def save_filters(self, filters: dict[str, Any]) -> None:
        self._save(AGENT_FILTERS_KEY, filters)

    def sort(self) -> dict[str, Any]:
        return self._load(AGENT_SORT_KEY, {})

    def save_sort(self, sort: dict[str, Any]) -> None:
        self._save(AGENT_SORT_KEY, sort)
