"""JSON file implementation of PreferenceStore."""

import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Union

from ..domain.interfaces.preference_store import PreferenceStore

logger = logging.getLogger(__name__)


class JsonFilePreferenceStore(PreferenceStore):
    """Preferences kept in a single JSON document on local disk."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)
