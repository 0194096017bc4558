"""PostgreSQL implementation of RawRecordRepository."""
from __future__ import annotations

import asyncpg


class PostgresRawRecordRepository:
    def __init__(self, db: asyncpg.Pool):
        self.db = db

    async def fetch_unprocessed(self, limit: int) -> list[dict]:
        rows = await self.db.fetch(
            """SELECT * FROM raw_records
               WHERE processed = FALSE
               ORDER BY COALESCE(original_timestamp, received_at) ASC, id ASC
               LIMIT $1""",
            limit,
        )
        return [dict(r) for r in rows]

    async def mark_processed(self, record_id: int) -> None:
        await self.db.execute("UPDATE raw_records SET processed = TRUE WHERE id = $1", record_id)

    async def insert(self, record: dict) -> int:
        return await self.db.fetchval(
            """INSERT INTO raw_records (
                source_type, session_file, project_slug, project_folder,
                team_port, content, original_timestamp, processed
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING id""",
            record.get("source_type"),
            record.get("session_file"),
            record.get("project_slug"),
            record.get("project_folder"),
            record.get("team_port"),
            record.get("content", ""),
            record.get("original_timestamp"),
            bool(record.get("processed")),
        )

    async def get_by_id(self, record_id: int) -> dict | None:
        row = await self.db.fetchrow("SELECT * FROM raw_records WHERE id = $1", record_id)
        return dict(row) if row else None

    async def count_unprocessed(self) -> int:
        return await self.db.fetchval("SELECT COUNT(*) FROM raw_records WHERE processed = FALSE") or 0
