"""Keyed document store for credential records.

The credential manager depends on BaseCredentialStore, not on a concrete
backend. Writes are last-writer-wins upserts keyed by user login.
"""

import logging
import sqlite3
from abc import ABC, abstractmethod

from drafter.credentials.models import CredentialRecord


logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS credentials (
    id                       TEXT PRIMARY KEY,
    refresh_token            TEXT NOT NULL,
    refresh_token_created_at TEXT NOT NULL,
    refresh_token_expires_at TEXT NOT NULL
);
"""


class BaseCredentialStore(ABC):
    """Pluggable persistence for credential records."""

    @abstractmethod
    def get(self, user_login: str) -> CredentialRecord | None:
        """Return the record for a login, or None if there is none."""

    @abstractmethod
    def upsert(self, record: CredentialRecord) -> None:
        """Create or replace the record keyed by ``record.id``."""

    @abstractmethod
    def delete(self, user_login: str) -> bool:
        """Delete the record for a login.

        Returns:
            True if a record was deleted. Deleting a missing record is not an error.
        """

    def close(self) -> None:
        """Release any resources held by the store."""


class SQLiteCredentialStore(BaseCredentialStore):
    """Stores credential records in a SQLite database file."""

    def __init__(self, db_path: str = "credentials.db"):
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def get(self, user_login: str) -> CredentialRecord | None:
        row = self._conn.execute(
            "SELECT * FROM credentials WHERE id = ?", (user_login,)
        ).fetchone()
        if row is None:
            return None
        return CredentialRecord.from_dict(
            {
                "id": row["id"],
                "refreshToken": row["refresh_token"],
                "refreshTokenCreatedAt": row["refresh_token_created_at"],
                "refreshTokenExpiresAt": row["refresh_token_expires_at"],
            }
        )

    def upsert(self, record: CredentialRecord) -> None:
        doc = record.to_dict()
        self._conn.execute(
            """
            INSERT INTO credentials
              (id, refresh_token, refresh_token_created_at, refresh_token_expires_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
              refresh_token = excluded.refresh_token,
              refresh_token_created_at = excluded.refresh_token_created_at,
              refresh_token_expires_at = excluded.refresh_token_expires_at
            """,
            (
                doc["id"],
                doc["refreshToken"],
                doc["refreshTokenCreatedAt"],
                doc["refreshTokenExpiresAt"],
            ),
        )
        self._conn.commit()

    def delete(self, user_login: str) -> bool:
        cursor = self._conn.execute("DELETE FROM credentials WHERE id = ?", (user_login,))
        self._conn.commit()
        return cursor.rowcount > 0

    def close(self) -> None:
        self._conn.close()
