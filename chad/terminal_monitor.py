"""Supervised websocket link to terminal-server-5400.

Terminal output is written straight into ``raw_records`` so it flows through
the same processing passes as transcripts. The link reconnects on its own
schedule and never touches the processing core.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from datetime import datetime, timezone
from typing import Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from chad import config

logger = logging.getLogger("chad.terminal")

_ANSI_PATTERN = re.compile(r"\x1b\[[0-9;]*m")

TERMINAL_SOURCE = {
    "source_type": "terminal",
    "session_file": "terminal/5400",
    "project_slug": "terminal",
    "team_port": 5400,
}


def strip_ansi(text: str) -> str:
    return _ANSI_PATTERN.sub("", text)


class TerminalMonitor:
    def __init__(self, url: str | None = None, reconnect_seconds: int | None = None):
        self.url = url or config.TERMINAL_WS_URL
        self.reconnect_seconds = (
            config.TERMINAL_RECONNECT_SECONDS if reconnect_seconds is None else reconnect_seconds
        )
        self._raw_repo = None
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self, raw_repo) -> None:
        if self._running:
            logger.warning("Terminal monitor already running")
            return
        self._raw_repo = raw_repo
        self._running = True
        self._task = asyncio.create_task(self._connect_loop())

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._connected = False
        logger.info("Terminal monitor stopped")

    async def _connect_loop(self) -> None:
        while self._running:
            logger.info("Connecting to terminal-server-5400...")
            try:
                async with websockets.connect(self.url) as ws:
                    self._connected = True
                    logger.info("Connected to terminal-server-5400 as monitor")
                    async for message in ws:
                        await self.handle_message(message)
                logger.warning("Disconnected from terminal-server-5400")
            except ConnectionClosed:
                logger.warning("Disconnected from terminal-server-5400")
            except (OSError, WebSocketException) as exc:
                logger.error("Terminal WebSocket error: %s", exc)
            finally:
                self._connected = False

            if self._running:
                await asyncio.sleep(self.reconnect_seconds)

    async def handle_message(self, data: str | bytes) -> None:
        text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
        try:
            msg = json.loads(text)
        except ValueError:
            if text.strip():
                await self.write_raw(text)
            return

        if not isinstance(msg, dict):
            return

        msg_type = msg.get("type")
        if msg_type == "monitor_output" and msg.get("data"):
            content = strip_ansi(str(msg["data"])).strip()
            if content:
                await self.write_raw(content)
        elif msg_type == "session_started":
            logger.info("Terminal session started (session=%s mode=%s)", msg.get("session"), msg.get("mode"))
        elif msg_type == "session_ended":
            logger.info("Terminal session ended (session=%s)", msg.get("session"))
            await self.flush("session-end")

    async def write_raw(self, content: str) -> None:
        if self._raw_repo is None:
            logger.error("Terminal monitor has no raw record store; dropping output")
            return
        try:
            await self._raw_repo.insert(
                {
                    **TERMINAL_SOURCE,
                    "content": content,
                    "original_timestamp": datetime.now(timezone.utc).isoformat(),
                    "processed": False,
                }
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Error writing terminal output to raw records: %s", exc)

    async def flush(self, reason: str) -> None:
        # Output is persisted as it arrives; nothing is buffered.
        logger.info("Terminal event (reason=%s)", reason)


# Singleton instance
terminal_monitor = TerminalMonitor()
