import json
from typing import Any, Dict, Optional

from transaction_tagger.repositories.base import KeyValueStore, PersistenceError


class InMemoryKeyValueStore(KeyValueStore):
    """
    Dict-backed store.

    Values are round-tripped through JSON on write so that anything the
    SQLite store would reject is rejected here too.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.persist(key, value)

    def persist(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Value for '{key}' is not serializable: {e}") from e

    def load(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def remove(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self):
        return list(self._data.keys())
