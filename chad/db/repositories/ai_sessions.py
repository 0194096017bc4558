"""SQLite implementation of AISessionRepository."""
from __future__ import annotations

import sqlite3

import aiosqlite

from chad.date_utils import utc_now_iso
from chad.db.errors import DuplicateKeyError


class SqliteAISessionRepository:
    """Session rows, unique per window key."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def create(self, session: dict) -> int:
        """Insert a session row. Raises DuplicateKeyError if the window already has one."""
        try:
            async with self.db.execute(
                """INSERT INTO ai_sessions (
                    project_id, project_uuid, project_slug, team_port,
                    source_type, source_name, status, raw_content,
                    message_count, started_at, window_key, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    session.get("project_id"),
                    session.get("project_uuid"),
                    session["project_slug"],
                    session.get("team_port"),
                    session["source_type"],
                    session["source_name"],
                    session.get("status", "active"),
                    session.get("raw_content", ""),
                    session.get("message_count", 0),
                    session["started_at"],
                    session["window_key"],
                    utc_now_iso(),
                ),
            ) as cur:
                await self.db.commit()
                return cur.lastrowid or 0
        except sqlite3.IntegrityError as exc:
            # SQLite undoes only the failed statement; the shared connection keeps other writes
            if "UNIQUE" in str(exc).upper():
                raise DuplicateKeyError(f"duplicate key value for window {session['window_key']}") from exc
            raise

    async def get_by_window_key(self, window_key: str) -> dict | None:
        async with self.db.execute(
            "SELECT * FROM ai_sessions WHERE window_key = ?", (window_key,)
        ) as cur:
            row = await cur.fetchone()
            return dict(row) if row else None

    async def list_recent(self, limit: int = 50, project_slug: str | None = None) -> list[dict]:
        if project_slug:
            query = "SELECT * FROM ai_sessions WHERE project_slug = ? ORDER BY started_at DESC, id DESC LIMIT ?"
            params: tuple = (project_slug, limit)
        else:
            query = "SELECT * FROM ai_sessions ORDER BY started_at DESC, id DESC LIMIT ?"
            params = (limit,)
        async with self.db.execute(query, params) as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def count(self) -> int:
        async with self.db.execute("SELECT COUNT(*) FROM ai_sessions") as cur:
            row = await cur.fetchone()
        return row[0] if row else 0
