from abc import ABC, abstractmethod
from typing import Any, Optional


class PersistenceError(Exception):
    """Raised when a store cannot read or write a value."""
    pass


class KeyValueStore(ABC):
    """
    Abstract string-keyed blob store.

    Values are JSON-serializable Python objects. Callers treat every
    operation as best-effort: a missing key is normal and failures are
    reported as PersistenceError, never as partial state.
    """

    @abstractmethod
    def persist(self, key: str, value: Any) -> None:
        """
        Store a value under `key`, replacing any previous value.

        Args:
            key: Storage key
            value: JSON-serializable value

        Raises:
            PersistenceError: If the value cannot be written
        """
        pass

    @abstractmethod
    def load(self, key: str) -> Optional[Any]:
        """
        Retrieve a value.

        Args:
            key: Storage key

        Returns:
            The stored value, or None if the key is absent

        Raises:
            PersistenceError: If the stored value cannot be read
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if deleted, False if not found
        """
        pass
