"""SQLite-backed session store keyed by session identifier."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional, Protocol

from member_oauth.models.session import SessionState


class SessionStore(Protocol):
    """Key-value contract the session service relies on."""

    def get(self, session_id: str) -> Optional[SessionState]: ...

    def put(self, session_id: str, state: SessionState) -> None: ...

    def delete(self, session_id: str) -> None: ...


class SQLiteSessionStore:
    """Persist ``SessionState`` records as JSON rows in a single table."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    session_id TEXT PRIMARY KEY,
                    data TEXT NOT NULL
                )
                """
            )

    def get(self, session_id: str) -> Optional[SessionState]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM sessions WHERE session_id = ?",
                (session_id,),
            ).fetchone()
        if not row:
            return None
        return SessionState.model_validate_json(row["data"])

    def put(self, session_id: str, state: SessionState) -> None:
        if not session_id:
            raise ValueError("session_id must be a non-empty string")
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO sessions (session_id, data)
                VALUES (?, ?)
                ON CONFLICT(session_id) DO UPDATE SET data = excluded.data
                """,
                (session_id, state.model_dump_json()),
            )

    def delete(self, session_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))


__all__ = ["SQLiteSessionStore", "SessionStore"]
