"""Pydantic models for raw records, session windows and persisted sessions."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

UNASSIGNED_SLUG = "unassigned"

ResolutionReason = Literal["trusted-label", "path-derived", "content-derived", "unresolved"]


# ── Ingested fragments ──────────────────────────────────────────────

class RawRecord(BaseModel):
    id: int
    source_type: Optional[str] = None
    session_file: Optional[str] = None
    project_slug: Optional[str] = None
    project_folder: Optional[str] = None
    team_port: Optional[int] = None
    content: Optional[str] = None
    original_timestamp: Optional[Union[datetime, str]] = None
    received_at: Optional[Union[datetime, str]] = None
    processed: bool = False


class SessionWindow(BaseModel):
    """In-memory aggregate of raw records sharing a window key."""
    window_start: int  # epoch ms
    source_type: str
    session_file: str
    project_folder: Optional[str] = None
    project_slug: Optional[str] = None
    team_port: Optional[int] = None
    record_ids: list[int] = Field(default_factory=list)
    content: str = ""
    earliest_ts: int = 0
    latest_ts: int = 0

    @property
    def key(self) -> str:
        # fields may themselves contain ":" (e.g. "C:/..." session files)
        return json.dumps(
            [self.source_type, self.session_file, self.team_port or 0, self.window_start],
            separators=(",", ":"),
        )


# ── Resolution ──────────────────────────────────────────────────────

class ProjectIdentity(BaseModel):
    slug: str = UNASSIGNED_SLUG
    port: Optional[int] = None
    reason: ResolutionReason = "unresolved"
    evidence: str = ""


# ── Persisted sessions ──────────────────────────────────────────────

class AISession(BaseModel):
    project_id: Optional[str] = None
    project_uuid: Optional[str] = None
    project_slug: str
    team_port: Optional[int] = None
    source_type: str
    source_name: str
    status: str = "active"
    raw_content: str
    message_count: int
    started_at: str
    window_key: str


class ProcessSummary(BaseModel):
    processed: int = 0
    sessions: int = 0
    errors: int = 0
    windows: int = 0
    skipped: int = 0
    duration_ms: int = 0
