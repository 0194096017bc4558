"""Periodic processing scheduler.

Runs one pass shortly after startup, then one every
``PROCESS_INTERVAL_SECONDS``. On-demand passes from the control surface are
not serialized against the timer; passes are safe to overlap.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from chad import config

logger = logging.getLogger("chad.scheduler")


class ProcessingScheduler:
    """Background task driving ``SessionProcessor.process_pending``."""

    def __init__(self):
        self._task: Optional[asyncio.Task] = None
        self._running = False

    async def start(
        self,
        processor,
        interval_seconds: int | None = None,
        initial_delay_seconds: int | None = None,
    ) -> None:
        if self._running:
            logger.warning("Processing scheduler already running")
            return

        interval = config.PROCESS_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        delay = config.STARTUP_PROCESS_DELAY_SECONDS if initial_delay_seconds is None else initial_delay_seconds

        self._running = True
        self._task = asyncio.create_task(self._loop(processor, max(1, interval), max(0, delay)))
        logger.info("Processing scheduler started (interval=%ss initial_delay=%ss)", interval, delay)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Processing scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    async def _loop(self, processor, interval: int, delay: int) -> None:
        trigger = "startup"
        try:
            await asyncio.sleep(delay)
            while self._running:
                try:
                    await processor.process_pending(trigger=trigger)
                except Exception as e:
                    logger.error(f"Scheduled processing pass failed: {e}")
                trigger = "interval"
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info("Processing scheduler task cancelled")
            raise
        finally:
            self._running = False


# Singleton instance
processing_scheduler = ProcessingScheduler()
