"""Time-window aggregation of raw records."""
from __future__ import annotations

from typing import Iterable

from chad.date_utils import to_epoch_ms
from chad.models import RawRecord, SessionWindow

WINDOW_SIZE_MS = 30 * 60 * 1000


def window_start(ts_ms: int) -> int:
    return (ts_ms // WINDOW_SIZE_MS) * WINDOW_SIZE_MS


def record_timestamp_ms(record: RawRecord) -> int | None:
    """Prefer the producer's original timestamp, fall back to receipt time."""
    ts = to_epoch_ms(record.original_timestamp) if record.original_timestamp else None
    if ts is None:
        ts = to_epoch_ms(record.received_at)
    return ts


def partition_undated(records: Iterable[RawRecord]) -> tuple[list[RawRecord], list[RawRecord]]:
    """Split records into (dated, undated) by whether a timestamp parses."""
    dated: list[RawRecord] = []
    undated: list[RawRecord] = []
    for record in records:
        if record_timestamp_ms(record) is None:
            undated.append(record)
        else:
            dated.append(record)
    return dated, undated


def group_by_time_window(records: Iterable[RawRecord]) -> list[SessionWindow]:
    """Group records by (source_type, session_file, team_port, window_start).

    Content is concatenated in iteration order, one trailing newline per
    member. Windows come back in order of first appearance. Records without a
    usable timestamp are ignored; see ``partition_undated``.
    """
    windows: dict[tuple[str, str, int, int], SessionWindow] = {}
    for record in records:
        ts = record_timestamp_ms(record)
        if ts is None:
            continue
        start = window_start(ts)
        source_type = record.source_type or "transcript"
        session_file = record.session_file or "unknown"
        key = (source_type, session_file, record.team_port or 0, start)

        window = windows.get(key)
        if window is None:
            window = SessionWindow(
                window_start=start,
                source_type=source_type,
                session_file=session_file,
                project_folder=record.project_folder or None,
                project_slug=record.project_slug or None,
                team_port=record.team_port or None,
                earliest_ts=ts,
                latest_ts=ts,
            )
            windows[key] = window

        window.record_ids.append(record.id)
        window.content += (record.content or "") + "\n"
        window.earliest_ts = min(window.earliest_ts, ts)
        window.latest_ts = max(window.latest_ts, ts)
    return list(windows.values())
