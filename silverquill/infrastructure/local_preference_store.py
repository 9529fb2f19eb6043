"""Local in-memory implementation of PreferenceStore."""

from typing import Dict, Optional

from ..domain.interfaces.preference_store import PreferenceStore


class LocalPreferenceStore(PreferenceStore):
    """Dictionary-backed preferences for testing and development purposes."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value
