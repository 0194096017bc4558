"""Store-level exceptions shared by the SQLite and Postgres repositories."""
from __future__ import annotations


class StoreError(Exception):
    """Base class for record-store failures."""


class DuplicateKeyError(StoreError):
    """An insert collided with an existing unique key."""
