import json
import sqlite3
from typing import Any, List, Optional

from transaction_tagger.database.connection import DatabaseManager
from transaction_tagger.repositories.base import KeyValueStore, PersistenceError


class SQLiteKeyValueStore(KeyValueStore):
    """
    SQLite implementation of the KeyValueStore.

    One row per key in the `kv_store` table, values stored as JSON text.
    """

    def __init__(self, db_manager: DatabaseManager, initialize: bool = True):
        self.db = db_manager
        if initialize:
            self.db.initialize_schema()

    def persist(self, key: str, value: Any) -> None:
        """Insert or replace the value for a key."""
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Value for '{key}' is not serializable: {e}") from e

        try:
            with self.db.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, payload),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not write '{key}': {e}") from e

    def load(self, key: str) -> Optional[Any]:
        """Retrieve a value, or None if the key doesn't exist"""
        try:
            conn = self.db.get_connection()
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?",
                (key,),
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not read '{key}': {e}") from e

        if row is None:
            return None

        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Stored value for '{key}' is corrupt: {e}") from e

    def remove(self, key: str) -> bool:
        """Delete a key."""
        try:
            with self.db.transaction() as conn:
                cursor = conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not delete '{key}': {e}") from e

    def keys(self) -> List[str]:
        try:
            conn = self.db.get_connection()
            rows = conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not list keys: {e}") from e
        return [row["key"] for row in rows]
