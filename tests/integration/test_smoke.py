"""
Integration tests running the smoke scenarios against a live server.

Tests cover:
- HttpServer start/stop on an ephemeral port
- Every smoke check passing against a fresh store
- Repeated runs with a suffix against a non-empty store
- The linkdb-smoke exit codes
"""

import httpx
import pytest

from dbaas.linkdb_server.api import HttpServer, LinkDbServicer
from dbaas.linkdb_server.config import HttpConfig
from dbaas.linkdb_server.store import GraphStore
from dbaas.linkdb_server.tools import smoke
from dbaas.linkdb_server.tools.smoke import SmokeRunner, run_smoke


def make_server():
    store = GraphStore()
    server = HttpServer(LinkDbServicer(store), HttpConfig(host="127.0.0.1", port=0))
    return store, server


class TestSmoke:
    """Smoke scenarios over real HTTP."""

    @pytest.mark.asyncio
    async def test_all_checks_pass(self):
        """Every scenario passes against a fresh server."""
        store, server = make_server()
        await server.start()
        try:
            assert server.is_running
            assert server.port
            report = await run_smoke(f"http://127.0.0.1:{server.port}")
        finally:
            await server.stop()

        assert report.failed == []
        assert report.passed
        assert len(report.checks) > 30
        assert store.check_integrity() == []
        assert not server.is_running

    @pytest.mark.asyncio
    async def test_repeat_with_suffix(self):
        """A second run with fresh ids passes on the same server."""
        store, server = make_server()
        await server.start()
        try:
            base_url = f"http://127.0.0.1:{server.port}"
            async with httpx.AsyncClient(base_url=base_url) as client:
                first = await SmokeRunner(client).run()
                second = await SmokeRunner(client, suffix="_run2").run()
        finally:
            await server.stop()

        assert first.passed
        assert second.passed
        assert store.exists("user", "user_001_run2")
        assert store.exists("user", "user_002")

    @pytest.mark.asyncio
    async def test_duplicate_run_fails(self):
        """Re-running without a suffix trips over existing ids."""
        _, server = make_server()
        await server.start()
        try:
            base_url = f"http://127.0.0.1:{server.port}"
            await run_smoke(base_url)
            report = await run_smoke(base_url)
        finally:
            await server.stop()

        assert not report.passed
        assert "User added successfully" in [c.name for c in report.failed]

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        """Stopping twice is safe."""
        _, server = make_server()
        await server.start()
        await server.stop()
        await server.stop()
        assert not server.is_running


class TestSmokeMain:
    """Tests for the CLI entry point."""

    def test_unreachable_server(self, capsys):
        """An unreachable server exits with 2."""
        code = smoke.main(["--base-url", "http://127.0.0.1:1", "--timeout", "1"])
        assert code == 2
        assert "cannot reach" in capsys.readouterr().err

    def test_report_summary(self):
        """The summary counts passed checks."""
        report = smoke.SmokeReport(
            checks=[
                smoke.CheckResult("g", "a", True),
                smoke.CheckResult("g", "b", False),
            ]
        )
        assert report.summary() == "1/2 checks passed"
        assert [c.name for c in report.failed] == ["b"]
        assert not report.passed

    def test_failed_check_logged_at_info(self, caplog):
        """Failed check responses are logged only when INFO is enabled."""
        runner = SmokeRunner(httpx.AsyncClient(base_url="http://127.0.0.1:1"))
        response = httpx.Response(409, json={"success": False, "error_code": "DUPLICATE_ENTITY"})

        with caplog.at_level("WARNING", logger="dbaas.linkdb_server.tools.smoke"):
            assert not runner.check("quiet", response, smoke.succeeded)
        assert caplog.records == []

        with caplog.at_level("INFO", logger="dbaas.linkdb_server.tools.smoke"):
            assert not runner.check("verbose", response, smoke.succeeded)
        assert [r.getMessage() for r in caplog.records] == ["Check failed: verbose"]
        assert [c.passed for c in runner.report.checks] == [False, False]
