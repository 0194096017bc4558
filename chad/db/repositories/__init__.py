"""Repository package for database access."""

from .raw_records import SqliteRawRecordRepository
from .ai_sessions import SqliteAISessionRepository
from .projects import SqliteProjectRepository

__all__ = [
    "SqliteRawRecordRepository",
    "SqliteAISessionRepository",
    "SqliteProjectRepository",
]
