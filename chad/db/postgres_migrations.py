"""PostgreSQL schema creation and versioning."""
from __future__ import annotations

import logging
import uuid

import asyncpg

from chad.date_utils import utc_now_iso
from chad.models import UNASSIGNED_SLUG

logger = logging.getLogger("chad.db")

SCHEMA_VERSION = 1

_TABLES = """
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS raw_records (
    id                 BIGSERIAL PRIMARY KEY,
    source_type        TEXT,
    session_file       TEXT,
    project_slug       TEXT,
    project_folder     TEXT,
    team_port          INTEGER,
    content            TEXT DEFAULT '',
    original_timestamp TEXT,
    received_at        TEXT NOT NULL DEFAULT to_char(now() AT TIME ZONE 'utc', 'YYYY-MM-DD"T"HH24:MI:SS.MS"Z"'),
    processed          BOOLEAN NOT NULL DEFAULT FALSE
);

CREATE INDEX IF NOT EXISTS idx_raw_records_unprocessed ON raw_records(processed, original_timestamp);

CREATE TABLE IF NOT EXISTS projects (
    id         TEXT PRIMARY KEY,
    slug       TEXT NOT NULL UNIQUE,
    name       TEXT DEFAULT '',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS ai_sessions (
    id            BIGSERIAL PRIMARY KEY,
    project_id    TEXT,
    project_uuid  TEXT,
    project_slug  TEXT NOT NULL,
    team_port     INTEGER,
    source_type   TEXT NOT NULL,
    source_name   TEXT NOT NULL,
    status        TEXT NOT NULL DEFAULT 'active',
    raw_content   TEXT DEFAULT '',
    message_count INTEGER DEFAULT 0,
    started_at    TEXT NOT NULL,
    window_key    TEXT NOT NULL UNIQUE,
    created_at    TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_ai_sessions_project ON ai_sessions(project_slug, started_at DESC);
"""


async def run_migrations(db: asyncpg.Pool) -> None:
    """Create all tables and seed the unassigned project. Idempotent."""
    async with db.acquire() as conn:
        async with conn.transaction():
            await conn.execute(_TABLES)
            current_version = await conn.fetchval("SELECT MAX(version) FROM schema_version") or 0
            if current_version >= SCHEMA_VERSION:
                logger.info("Schema is up to date (version %s)", current_version)
                return

            logger.info("Running migrations: %s → %s", current_version, SCHEMA_VERSION)
            await conn.execute(
                """INSERT INTO projects (id, slug, name, created_at) VALUES ($1, $2, $3, $4)
                   ON CONFLICT (slug) DO NOTHING""",
                str(uuid.uuid4()), UNASSIGNED_SLUG, "Unassigned", utc_now_iso(),
            )
            await conn.execute("INSERT INTO schema_version (version) VALUES ($1)", SCHEMA_VERSION)
    logger.info("Migrations complete, schema version %s", SCHEMA_VERSION)
