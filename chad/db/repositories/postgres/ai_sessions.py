"""PostgreSQL implementation of AISessionRepository."""
from __future__ import annotations

import asyncpg

from chad.date_utils import utc_now_iso
from chad.db.errors import DuplicateKeyError


class PostgresAISessionRepository:
    def __init__(self, db: asyncpg.Pool):
        self.db = db

    async def create(self, session: dict) -> int:
        try:
            return await self.db.fetchval(
                """INSERT INTO ai_sessions (
                    project_id, project_uuid, project_slug, team_port,
                    source_type, source_name, status, raw_content,
                    message_count, started_at, window_key, created_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                RETURNING id""",
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
            )
        except asyncpg.exceptions.UniqueViolationError as exc:
            raise DuplicateKeyError(f"duplicate key value for window {session['window_key']}") from exc

    async def get_by_window_key(self, window_key: str) -> dict | None:
        row = await self.db.fetchrow("SELECT * FROM ai_sessions WHERE window_key = $1", window_key)
        return dict(row) if row else None

    async def list_recent(self, limit: int = 50, project_slug: str | None = None) -> list[dict]:
        if project_slug:
            rows = await self.db.fetch(
                "SELECT * FROM ai_sessions WHERE project_slug = $1 ORDER BY started_at DESC, id DESC LIMIT $2",
                project_slug, limit,
            )
        else:
            rows = await self.db.fetch(
                "SELECT * FROM ai_sessions ORDER BY started_at DESC, id DESC LIMIT $1", limit,
            )
        return [dict(r) for r in rows]

    async def count(self) -> int:
        return await self.db.fetchval("SELECT COUNT(*) FROM ai_sessions") or 0
