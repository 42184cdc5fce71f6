from __future__ import annotations

import asyncio
import base64
import sqlite3
from pathlib import Path
from typing import Protocol


def to_data_uri(raw: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(raw).decode('ascii')}"


class BlobStore(Protocol):
    async def get_blob(self, key: str) -> str | None: ...


class InMemoryBlobStore:
    def __init__(self) -> None:
        self._blobs: dict[str, str] = {}

    async def get_blob(self, key: str) -> str | None:
        return self._blobs.get(key)

    def set_blob(self, key: str, value: str) -> None:
        self._blobs[key] = value

    def delete_blob(self, key: str) -> None:
        self._blobs.pop(key, None)


class SQLiteBlobStore:
    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path, timeout=5)

    def _init_schema(self) -> None:
        with self._connect() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS blobs (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            connection.commit()

    async def get_blob(self, key: str) -> str | None:
        return await asyncio.to_thread(self._read_blob, key)

    def _read_blob(self, key: str) -> str | None:
        with self._connect() as connection:
            row = connection.execute("SELECT value FROM blobs WHERE key = ?", (key,)).fetchone()
        if not row:
            return None
        return str(row[0])

    def set_blob(self, key: str, value: str) -> None:
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO blobs (key, value)
                VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    created_at = CURRENT_TIMESTAMP
                """,
                (key, value),
            )
            connection.commit()

    def delete_blob(self, key: str) -> None:
        with self._connect() as connection:
            connection.execute("DELETE FROM blobs WHERE key = ?", (key,))
            connection.commit()
