from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from datetime import datetime, timezone
from pathlib import Path

OPENAI_KEY_NAME = "openai_api_key"


class CredentialStore(AbstractContextManager["CredentialStore"]):
    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        with self.conn:
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS credentials (
                    name TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def get_credential(self, name: str) -> str | None:
        row = self.conn.execute(
            "SELECT value FROM credentials WHERE name = ?", (name,)
        ).fetchone()
        if row is None:
            return None
        return str(row["value"])

    def set_credential(self, name: str, value: str, updated_at_utc: str | None = None) -> None:
        updated_at = updated_at_utc or datetime.now(timezone.utc).replace(microsecond=0).isoformat()
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO credentials (name, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (name, value, updated_at),
            )

    def delete_credential(self, name: str) -> bool:
        with self.conn:
            cursor = self.conn.execute("DELETE FROM credentials WHERE name = ?", (name,))
        return cursor.rowcount == 1

    def close(self) -> None:
        self.conn.close()

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()
