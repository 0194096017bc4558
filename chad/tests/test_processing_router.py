import types
import unittest
from unittest.mock import patch

from fastapi import HTTPException

from chad import main
from chad.models import ProcessSummary
from chad.routers import processing as processing_router


class _FakeRawRepo:
    async def count_unprocessed(self):
        return 7


class _FakeSessionRepo:
    def __init__(self) -> None:
        self.calls: list[dict] = []

    async def list_recent(self, limit=50, project_slug=None):
        self.calls.append({"limit": limit, "project_slug": project_slug})
        return [{"id": 1, "project_slug": project_slug or "unassigned"}]


class _FakeProcessor:
    def __init__(self) -> None:
        self.triggers: list[str] = []
        self.raw_repo = _FakeRawRepo()
        self.session_repo = _FakeSessionRepo()

    async def process_pending(self, trigger="api"):
        self.triggers.append(trigger)
        return ProcessSummary(processed=4, sessions=2, errors=1, windows=3, skipped=1)

    async def get_observability_snapshot(self):
        return {"activeRunCount": 0, "activeRuns": [], "recentRuns": [], "trackedRunCount": 1}

    async def list_runs(self, limit=20):
        return [{"id": "RUN-1", "status": "completed"}][:limit]

    async def get_run(self, run_id):
        if run_id == "RUN-404":
            return None
        return {"id": run_id, "status": "completed"}


class ProcessingRouterTests(unittest.IsolatedAsyncioTestCase):
    def _request(self, processor):
        return types.SimpleNamespace(
            app=types.SimpleNamespace(state=types.SimpleNamespace(processor=processor))
        )

    async def test_process_returns_pass_summary(self) -> None:
        processor = _FakeProcessor()

        payload = await processing_router.trigger_process(self._request(processor))

        self.assertEqual(payload, {"processed": 4, "sessions": 2, "errors": 1})
        self.assertEqual(processor.triggers, ["api"])

    async def test_process_without_processor_is_unavailable(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            await processing_router.trigger_process(self._request(None))
        self.assertEqual(ctx.exception.status_code, 503)

    async def test_flush_terminal_always_succeeds(self) -> None:
        with self.assertLogs("chad.terminal", level="INFO") as logs:
            payload = await processing_router.flush_terminal()

        self.assertEqual(payload, {"success": True})
        self.assertTrue(any("reason=manual" in line for line in logs.output))

    async def test_status_reports_backlog_and_runs(self) -> None:
        payload = await processing_router.get_processing_status(self._request(_FakeProcessor()))

        self.assertEqual(payload["unprocessedRecords"], 7)
        self.assertEqual(payload["scheduler"], "stopped")
        self.assertEqual(payload["terminalMonitor"], "disconnected")
        self.assertEqual(payload["runs"]["trackedRunCount"], 1)

    async def test_runs_listing_and_lookup(self) -> None:
        request = self._request(_FakeProcessor())

        listing = await processing_router.list_processing_runs(request, limit=5)
        self.assertEqual(listing["count"], 1)
        self.assertEqual(listing["items"][0]["id"], "RUN-1")

        run = await processing_router.get_processing_run(request, "RUN-9")
        self.assertEqual(run["id"], "RUN-9")

        with self.assertRaises(HTTPException) as ctx:
            await processing_router.get_processing_run(request, "RUN-404")
        self.assertEqual(ctx.exception.status_code, 404)

    async def test_sessions_listing_passes_filters(self) -> None:
        processor = _FakeProcessor()

        payload = await processing_router.list_recent_sessions(
            self._request(processor), limit=10, project_slug="ai-jen-5402"
        )

        self.assertEqual(payload["count"], 1)
        self.assertEqual(processor.session_repo.calls, [{"limit": 10, "project_slug": "ai-jen-5402"}])


class HealthEndpointTests(unittest.TestCase):
    def test_health_reports_service_identity(self) -> None:
        with patch.object(main.connection, "is_connected", return_value=True):
            payload = main.health()

        self.assertEqual(payload["status"], "ok")
        self.assertEqual(payload["service"], "chad-5401")
        self.assertEqual(payload["db"], "connected")
        self.assertFalse(payload["terminalConnected"])
        self.assertEqual(payload["terminalBufferSize"], 0)
        self.assertGreaterEqual(payload["uptime"], 0)


if __name__ == "__main__":
    unittest.main()
