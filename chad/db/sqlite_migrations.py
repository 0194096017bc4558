"""SQLite schema creation and versioning.

Uses IF NOT EXISTS for idempotent runs.
"""
from __future__ import annotations

import logging
import uuid

import aiosqlite

from chad.date_utils import utc_now_iso
from chad.models import UNASSIGNED_SLUG

logger = logging.getLogger("chad.db")

SCHEMA_VERSION = 1

_TABLES = """
-- ── Schema version tracking ────────────────────────────────────────
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TEXT NOT NULL DEFAULT (datetime('now'))
);

-- ── 1. Raw records (written by the ingestion feed) ─────────────────
CREATE TABLE IF NOT EXISTS raw_records (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    source_type        TEXT,
    session_file       TEXT,
    project_slug       TEXT,
    project_folder     TEXT,
    team_port          INTEGER,
    content            TEXT DEFAULT '',
    original_timestamp TEXT,
    received_at        TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    processed          INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_raw_records_unprocessed ON raw_records(processed, original_timestamp);

-- ── 2. Project identities ──────────────────────────────────────────
CREATE TABLE IF NOT EXISTS projects (
    id         TEXT PRIMARY KEY,
    slug       TEXT NOT NULL UNIQUE,
    name       TEXT DEFAULT '',
    created_at TEXT NOT NULL
);

-- ── 3. AI sessions (one row per window key) ────────────────────────
CREATE TABLE IF NOT EXISTS ai_sessions (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
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


async def run_migrations(db: aiosqlite.Connection) -> None:
    """Create all tables and seed the unassigned project. Idempotent."""
    try:
        async with db.execute("SELECT MAX(version) FROM schema_version") as cur:
            row = await cur.fetchone()
            current_version = row[0] if row and row[0] else 0
    except aiosqlite.OperationalError:
        current_version = 0

    if current_version >= SCHEMA_VERSION:
        logger.info("Schema is up to date (version %s)", current_version)
        return

    logger.info("Running migrations: %s → %s", current_version, SCHEMA_VERSION)
    await db.executescript(_TABLES)

    await db.execute(
        "INSERT OR IGNORE INTO projects (id, slug, name, created_at) VALUES (?, ?, ?, ?)",
        (str(uuid.uuid4()), UNASSIGNED_SLUG, "Unassigned", utc_now_iso()),
    )

    await db.execute(
        "INSERT INTO schema_version (version) VALUES (?)",
        (SCHEMA_VERSION,),
    )
    await db.commit()
    logger.info("Migrations complete, schema version %s", SCHEMA_VERSION)
