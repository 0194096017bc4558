"""SQLite implementation of ProjectRepository."""
from __future__ import annotations

import uuid

import aiosqlite

from chad.date_utils import utc_now_iso


class SqliteProjectRepository:
    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def get_id_by_slug(self, slug: str) -> str | None:
        async with self.db.execute("SELECT id FROM projects WHERE slug = ?", (slug,)) as cur:
            row = await cur.fetchone()
        return str(row[0]) if row else None

    async def upsert(self, slug: str, name: str = "") -> str:
        await self.db.execute(
            """INSERT INTO projects (id, slug, name, created_at) VALUES (?, ?, ?, ?)
               ON CONFLICT(slug) DO UPDATE SET name=excluded.name""",
            (str(uuid.uuid4()), slug, name, utc_now_iso()),
        )
        await self.db.commit()
        project_id = await self.get_id_by_slug(slug)
        return project_id or ""
