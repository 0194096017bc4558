"""Chad session capture: FastAPI application entry point."""
from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI

from chad import config
from chad.db import connection, migrations
from chad.db.session_processor import SessionProcessor
from chad.observability import initialize as initialize_observability, shutdown as shutdown_observability
from chad.routers.processing import processing_router, runs_router
from chad.routing_rules import get_routing_rules
from chad.scheduler import processing_scheduler
from chad.terminal_monitor import terminal_monitor

logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO))
logger = logging.getLogger("chad")

_STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("Chad starting up")
    initialize_observability(app)

    # 1. Initialize DB connection
    db = await connection.get_connection()

    # 2. Run migrations
    await migrations.run_migrations(db)

    # 3. Session processor (routing tables load here so a bad file fails startup)
    processor = SessionProcessor(db, rules=get_routing_rules())
    app.state.processor = processor

    # 4. Timer-driven passes
    if config.SCHEDULER_ENABLED:
        await processing_scheduler.start(processor)

    # 5. Terminal monitor (terminal-server-5400 normally uploads directly)
    if config.TERMINAL_MONITOR_ENABLED:
        await terminal_monitor.start(processor.raw_repo)

    logger.info(
        "Chad ready (port=%s pid=%s monitoring=%s)",
        config.PORT,
        os.getpid(),
        ["raw_records", "terminal-5400"] if config.TERMINAL_MONITOR_ENABLED else ["raw_records"],
    )

    yield

    logger.info("Chad shutting down")
    await terminal_monitor.stop()
    await processing_scheduler.stop()
    shutdown_observability(app)
    await connection.close_connection()


app = FastAPI(
    title="Chad Session Capture",
    description="Groups raw transcript and terminal records into project-attributed AI sessions",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(processing_router)
app.include_router(runs_router)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": config.SERVICE_NAME,
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
        "db": "connected" if connection.is_connected() else "disconnected",
        "scheduler": "running" if processing_scheduler.is_running else "stopped",
        "terminalConnected": terminal_monitor.is_connected,
        "terminalBufferSize": 0,
    }


def run() -> None:
    import uvicorn

    uvicorn.run("chad.main:app", host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
