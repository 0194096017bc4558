"""SQLite implementation of RawRecordRepository."""
from __future__ import annotations

import aiosqlite


class SqliteRawRecordRepository:
    """Raw ingested fragments; the processor only reads them and flips ``processed``."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def fetch_unprocessed(self, limit: int) -> list[dict]:
        async with self.db.execute(
            """SELECT * FROM raw_records
               WHERE processed = 0
               ORDER BY COALESCE(original_timestamp, received_at) ASC, id ASC
               LIMIT ?""",
            (limit,),
        ) as cur:
            return [dict(r) for r in await cur.fetchall()]

    async def mark_processed(self, record_id: int) -> None:
        await self.db.execute("UPDATE raw_records SET processed = 1 WHERE id = ?", (record_id,))
        await self.db.commit()

    async def insert(self, record: dict) -> int:
        async with self.db.execute(
            """INSERT INTO raw_records (
                source_type, session_file, project_slug, project_folder,
                team_port, content, original_timestamp, processed
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                record.get("source_type"),
                record.get("session_file"),
                record.get("project_slug"),
                record.get("project_folder"),
                record.get("team_port"),
                record.get("content", ""),
                record.get("original_timestamp"),
                1 if record.get("processed") else 0,
            ),
        ) as cur:
            await self.db.commit()
            return cur.lastrowid or 0

    async def get_by_id(self, record_id: int) -> dict | None:
        async with self.db.execute("SELECT * FROM raw_records WHERE id = ?", (record_id,)) as cur:
            row = await cur.fetchone()
            return dict(row) if row else None

    async def count_unprocessed(self) -> int:
        async with self.db.execute("SELECT COUNT(*) FROM raw_records WHERE processed = 0") as cur:
            row = await cur.fetchone()
        return row[0] if row else 0
