"""Processing trigger + observability API."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from chad.scheduler import processing_scheduler
from chad.terminal_monitor import terminal_monitor

processing_router = APIRouter(tags=["processing"])
runs_router = APIRouter(prefix="/api/processing", tags=["processing"])


def _get_processor(request: Request):
    processor = getattr(request.app.state, "processor", None)
    if not processor:
        raise HTTPException(status_code=503, detail="Session processor not initialized")
    return processor


@processing_router.post("/process")
async def trigger_process(request: Request):
    """Run one processing pass and return its summary."""
    processor = _get_processor(request)
    summary = await processor.process_pending(trigger="api")
    return {
        "processed": summary.processed,
        "sessions": summary.sessions,
        "errors": summary.errors,
    }


@processing_router.post("/flush-terminal")
async def flush_terminal():
    await terminal_monitor.flush("manual")
    return {"success": True}


@runs_router.get("/status")
async def get_processing_status(request: Request):
    """Scheduler state, backlog size and live run tracking."""
    processor = _get_processor(request)
    snapshot = await processor.get_observability_snapshot()
    backlog = await processor.raw_repo.count_unprocessed()
    return {
        "status": "active",
        "scheduler": "running" if processing_scheduler.is_running else "stopped",
        "terminalMonitor": "connected" if terminal_monitor.is_connected else "disconnected",
        "unprocessedRecords": backlog,
        "runs": snapshot,
    }


@runs_router.get("/runs")
async def list_processing_runs(request: Request, limit: int = Query(20, ge=1, le=200)):
    processor = _get_processor(request)
    runs = await processor.list_runs(limit=limit)
    return {"status": "ok", "count": len(runs), "items": runs}


@runs_router.get("/runs/{run_id}")
async def get_processing_run(request: Request, run_id: str):
    processor = _get_processor(request)
    run = await processor.get_run(run_id)
    if not run:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    return run


@runs_router.get("/sessions")
async def list_recent_sessions(
    request: Request,
    limit: int = Query(50, ge=1, le=500),
    project_slug: str | None = None,
):
    """Most recent AI sessions, newest window first."""
    processor = _get_processor(request)
    sessions = await processor.session_repo.list_recent(limit=limit, project_slug=project_slug)
    return {"status": "ok", "count": len(sessions), "items": sessions}
