"""Batch processor turning raw records into AI session rows.

One pass fetches a snapshot of unprocessed raw records, groups them into
30-minute windows, resolves a project identity per window, inserts one
session per window and flags the member records processed. Session inserts
are idempotent per window key, so overlapping or repeated passes converge.
"""
from __future__ import annotations

import asyncio
import copy
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from chad import config
from chad.date_utils import epoch_ms_to_iso
from chad.db.errors import DuplicateKeyError
from chad.db.factory import (
    get_ai_session_repository,
    get_project_repository,
    get_raw_record_repository,
)
from chad.identity import resolve_identity
from chad.models import UNASSIGNED_SLUG, AISession, ProcessSummary, RawRecord, SessionWindow
from chad.observability import record_pass, record_resolution, start_span
from chad.routing import derive_project_path, extract_cwd
from chad.routing_rules import RoutingRules, get_routing_rules
from chad.windows import group_by_time_window, partition_undated

logger = logging.getLogger("chad.processor")


def _message_count(content: str) -> int:
    return content.count("\n") + 1


class SessionProcessor:
    """Fetch → aggregate → resolve → filter → persist → mark-processed → report."""

    def __init__(
        self,
        db: Any,  # db is Union[aiosqlite.Connection, asyncpg.Pool]
        rules: RoutingRules | None = None,
        batch_size: int | None = None,
        min_content_chars: int | None = None,
    ):
        self.db = db
        self.raw_repo = get_raw_record_repository(db)
        self.session_repo = get_ai_session_repository(db)
        self.project_repo = get_project_repository(db)
        self.rules = rules or get_routing_rules()
        self.batch_size = batch_size if batch_size is not None else config.PROCESS_BATCH_SIZE
        self.min_content_chars = (
            min_content_chars if min_content_chars is not None else config.MIN_SESSION_CONTENT_CHARS
        )
        self._runs_lock = asyncio.Lock()
        self._runs: dict[str, dict[str, Any]] = {}
        self._run_order: list[str] = []
        self._active_run_ids: set[str] = set()
        self._max_run_history = 40

    # ── Run tracking ────────────────────────────────────────────────

    async def list_runs(self, limit: int = 20) -> list[dict[str, Any]]:
        """Return latest pass snapshots, newest first."""
        async with self._runs_lock:
            run_ids = self._run_order[: max(1, limit)]
            return [copy.deepcopy(self._runs[run_id]) for run_id in run_ids if run_id in self._runs]

    async def get_run(self, run_id: str) -> dict[str, Any] | None:
        async with self._runs_lock:
            run = self._runs.get(run_id)
            if not run:
                return None
            return copy.deepcopy(run)

    async def get_observability_snapshot(self) -> dict[str, Any]:
        async with self._runs_lock:
            active = [
                copy.deepcopy(self._runs[run_id])
                for run_id in self._run_order
                if run_id in self._active_run_ids and run_id in self._runs
            ]
            latest = [
                copy.deepcopy(self._runs[run_id])
                for run_id in self._run_order[:5]
                if run_id in self._runs
            ]
            return {
                "activeRunCount": len(active),
                "activeRuns": active,
                "recentRuns": latest,
                "trackedRunCount": len(self._runs),
            }

    async def _start_run(self, trigger: str) -> str:
        run_id = f"RUN-{uuid.uuid4()}"
        now = datetime.now(timezone.utc).isoformat()
        payload = {
            "id": run_id,
            "trigger": trigger,
            "status": "running",
            "phase": "fetch",
            "startedAt": now,
            "updatedAt": now,
            "finishedAt": "",
            "durationMs": 0,
            "counters": {},
            "error": "",
        }
        async with self._runs_lock:
            self._runs[run_id] = payload
            self._run_order.insert(0, run_id)
            self._active_run_ids.add(run_id)
            if len(self._run_order) > self._max_run_history:
                stale_ids = self._run_order[self._max_run_history :]
                self._run_order = self._run_order[: self._max_run_history]
                for stale_id in stale_ids:
                    self._runs.pop(stale_id, None)
                    self._active_run_ids.discard(stale_id)
        logger.info("Processing run started [%s] (trigger=%s)", run_id, trigger)
        return run_id

    async def _update_run(self, run_id: str, *, phase: str, counters: dict[str, Any] | None = None) -> None:
        async with self._runs_lock:
            run = self._runs.get(run_id)
            if not run:
                return
            run["phase"] = phase
            if counters:
                run["counters"].update(counters)
            run["updatedAt"] = datetime.now(timezone.utc).isoformat()

    async def _finish_run(
        self,
        run_id: str,
        summary: ProcessSummary,
        *,
        status: str,
        error: str = "",
    ) -> None:
        async with self._runs_lock:
            run = self._runs.get(run_id)
            if not run:
                return
            now = datetime.now(timezone.utc).isoformat()
            run["status"] = status
            run["phase"] = "report"
            run["updatedAt"] = now
            run["finishedAt"] = now
            run["durationMs"] = summary.duration_ms
            run["counters"].update(summary.model_dump())
            if error:
                run["error"] = error
            self._active_run_ids.discard(run_id)
        if status == "failed":
            logger.error("Processing run failed [%s]: %s", run_id, error)
        else:
            logger.info("Processing run finished [%s] status=%s", run_id, status)

    # ── Pass ────────────────────────────────────────────────────────

    async def process_pending(self, trigger: str = "api") -> ProcessSummary:
        """Run one processing pass. Never raises; failures are counted in the summary."""
        run_id = await self._start_run(trigger)
        t0 = time.monotonic()
        summary = ProcessSummary()
        status = "completed"
        error = ""

        with start_span("chad.process_pending", {"trigger": trigger, "run_id": run_id}):
            try:
                await self._run_pass(run_id, summary)
            except _FetchFailed as exc:
                summary = ProcessSummary(errors=1)
                status = "failed"
                error = str(exc)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Processing failed")
                summary.errors += 1
                status = "failed"
                error = str(exc)

        summary.duration_ms = int((time.monotonic() - t0) * 1000)
        await self._finish_run(run_id, summary, status=status, error=error)
        record_pass(
            trigger=trigger,
            processed=summary.processed,
            sessions=summary.sessions,
            errors=summary.errors,
            duration_ms=summary.duration_ms,
        )
        logger.info(
            "Processing complete (sessions=%s records=%s errors=%s windows=%s)",
            summary.sessions,
            summary.processed,
            summary.errors,
            summary.windows,
        )
        return summary

    async def _run_pass(self, run_id: str, summary: ProcessSummary) -> None:
        logger.info("Processing raw records...")
        try:
            rows = await self.raw_repo.fetch_unprocessed(self.batch_size)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to fetch raw records: %s", exc)
            raise _FetchFailed(str(exc)) from exc

        if not rows:
            logger.info("No new raw records to process")
            return
        logger.info("Found raw records to process (count=%s)", len(rows))

        records, malformed_ids = self._to_records(rows, summary)
        if malformed_ids:
            # consumed once so they cannot pin the head of the fetch order
            summary.processed += await self._mark_processed(malformed_ids)

        dated, undated = partition_undated(records)
        if undated:
            logger.warning("Consuming %s raw records without a usable timestamp", len(undated))
            summary.processed += await self._mark_processed([r.id for r in undated])

        await self._update_run(run_id, phase="aggregate")
        windows = group_by_time_window(dated)
        summary.windows = len(windows)
        logger.info("Grouped into windows (windows=%s)", len(windows))

        await self._update_run(run_id, phase="windows", counters={"windows": len(windows)})
        for window in windows:
            await self._process_window(window, summary)
            await self._update_run(
                run_id,
                phase="windows",
                counters={
                    "processed": summary.processed,
                    "sessions": summary.sessions,
                    "errors": summary.errors,
                },
            )

    def _to_records(
        self, rows: list[dict], summary: ProcessSummary
    ) -> tuple[list[RawRecord], list[int]]:
        """Validate rows; malformed ones are counted as errors and returned by id."""
        records: list[RawRecord] = []
        malformed_ids: list[int] = []
        for row in rows:
            try:
                records.append(RawRecord.model_validate(row))
            except ValidationError as exc:
                logger.error("Consuming malformed raw record %s: %s", row.get("id"), exc)
                summary.errors += 1
                if isinstance(row.get("id"), int):
                    malformed_ids.append(row["id"])
        return records, malformed_ids

    async def _process_window(self, window: SessionWindow, summary: ProcessSummary) -> None:
        try:
            content = window.content
            cwd = extract_cwd(content)
            identity = resolve_identity(window, cwd, self.rules)
            final_port = identity.port or window.team_port
            if identity.reason != "trusted-label":
                logger.info(
                    "Slug resolved %s (reason=%s evidence=%s)",
                    identity.slug,
                    identity.reason,
                    identity.evidence,
                )
            record_resolution(identity.reason, project_slug=identity.slug)

            if len(content) < self.min_content_chars:
                summary.processed += await self._mark_processed(window.record_ids)
                summary.skipped += 1
                return

            project_id = await self._resolve_project_id(identity.slug)
            session = AISession(
                project_id=project_id,
                project_uuid=project_id,
                project_slug=identity.slug,
                team_port=final_port,
                source_type=window.source_type,
                source_name=window.session_file,
                status="active",
                raw_content=content,
                message_count=_message_count(content),
                started_at=epoch_ms_to_iso(window.window_start),
                window_key=window.key,
            )

            try:
                await self.session_repo.create(session.model_dump())
            except DuplicateKeyError:
                logger.info("Session exists, skipping duplicate (window=%s)", window.key)
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to create session (window=%s): %s", window.key, exc)
                summary.errors += 1
                return

            summary.processed += await self._mark_processed(window.record_ids)
            summary.sessions += 1
            logger.info(
                "Created session from window (project=%s slug=%s records=%s messages=%s)",
                derive_project_path(window.session_file),
                identity.slug,
                len(window.record_ids),
                session.message_count,
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to process window %s: %s", window.key, exc)
            summary.errors += 1

    async def _resolve_project_id(self, slug: str) -> str | None:
        project_id = await self.project_repo.get_id_by_slug(slug)
        if project_id:
            return project_id
        if slug != UNASSIGNED_SLUG:
            return await self.project_repo.get_id_by_slug(UNASSIGNED_SLUG)
        return None

    async def _mark_processed(self, record_ids: list[int]) -> int:
        """Flag records one at a time; a failed update leaves that record for the next pass."""
        for record_id in record_ids:
            try:
                await self.raw_repo.mark_processed(record_id)
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to mark raw record %s processed: %s", record_id, exc)
        return len(record_ids)


class _FetchFailed(Exception):
    pass
