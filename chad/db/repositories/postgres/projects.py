"""PostgreSQL implementation of ProjectRepository."""
from __future__ import annotations

import uuid

import asyncpg

from chad.date_utils import utc_now_iso


class PostgresProjectRepository:
    def __init__(self, db: asyncpg.Pool):
        self.db = db

    async def get_id_by_slug(self, slug: str) -> str | None:
        value = await self.db.fetchval("SELECT id FROM projects WHERE slug = $1", slug)
        return str(value) if value is not None else None

    async def upsert(self, slug: str, name: str = "") -> str:
        value = await self.db.fetchval(
            """INSERT INTO projects (id, slug, name, created_at) VALUES ($1, $2, $3, $4)
               ON CONFLICT (slug) DO UPDATE SET name = EXCLUDED.name
               RETURNING id""",
            str(uuid.uuid4()), slug, name, utc_now_iso(),
        )
        return str(value)
