"""Repository factory to abstract DB backend (SQLite vs Postgres)."""
from __future__ import annotations

from typing import Any

import aiosqlite

from chad.db.repositories.raw_records import SqliteRawRecordRepository
from chad.db.repositories.ai_sessions import SqliteAISessionRepository
from chad.db.repositories.projects import SqliteProjectRepository


def get_raw_record_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteRawRecordRepository(db)
    from chad.db.repositories.postgres.raw_records import PostgresRawRecordRepository
    return PostgresRawRecordRepository(db)


def get_ai_session_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteAISessionRepository(db)
    from chad.db.repositories.postgres.ai_sessions import PostgresAISessionRepository
    return PostgresAISessionRepository(db)


def get_project_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteProjectRepository(db)
    from chad.db.repositories.postgres.projects import PostgresProjectRepository
    return PostgresProjectRepository(db)
