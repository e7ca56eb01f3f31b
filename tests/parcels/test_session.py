"""
Tests for the browser session manager, driven by a fake Playwright.
"""
import asyncio

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.parcels.browser.session import BrowserConfig, can_use_playwright_in_this_env
from src.parcels.errors import ErrorCode, ScrapeError
from src.parcels.utils.retry import RetryPolicy
from tests.parcels.fakes import FakeChromium, make_session_manager


class TestEnvironmentCheck:
    """Tests for can_use_playwright_in_this_env."""

    def test_production_without_endpoint(self):
        """Test that production requires a remote endpoint."""
        check = can_use_playwright_in_this_env(ws_endpoint="", production=True)

        assert not check.ok
        assert "PLAYWRIGHT_WS_ENDPOINT" in check.reason

    def test_production_with_endpoint(self):
        """Test that production with an endpoint is usable."""
        assert can_use_playwright_in_this_env(ws_endpoint="wss://browser.example", production=True).ok

    def test_development_launches_locally(self):
        """Test that non-production environments are always usable."""
        assert can_use_playwright_in_this_env(ws_endpoint="", production=False).ok


class TestBrowserConfig:
    """Tests for BrowserConfig mode selection."""

    def test_auto_mode_uses_remote_with_endpoint(self):
        """Test that auto mode goes remote when an endpoint is set."""
        assert BrowserConfig(ws_endpoint="wss://browser.example").use_remote
        assert not BrowserConfig(ws_endpoint=None).use_remote

    def test_explicit_modes(self):
        """Test that explicit modes override the endpoint."""
        assert BrowserConfig(mode="remote").use_remote
        assert not BrowserConfig(mode="local", ws_endpoint="wss://browser.example").use_remote


class TestBrowserSessionManager:
    """Tests for BrowserSessionManager."""

    def test_local_launch_and_context_cleanup(self):
        """Test that each operation gets a fresh context that is closed afterwards."""
        manager, chromium, _ = make_session_manager(mode="local", nav_timeout_ms=1000, op_timeout_ms=2000)

        async def run():
            first = await manager.with_page(lambda page, context: _return(context))
            second = await manager.with_page(lambda page, context: _return(context))
            return first, second

        first, second = asyncio.run(run())

        assert chromium.launch_calls == 1
        assert first is not second
        assert first.closed and second.closed
        assert first.default_timeout == 2000
        assert first.default_navigation_timeout == 1000

    def test_concurrent_callers_share_one_connection(self):
        """Test that concurrent first calls launch a single browser."""
        manager, chromium, _ = make_session_manager(mode="local")

        async def run():
            return await asyncio.gather(*(manager.get_browser() for _ in range(5)))

        browsers = asyncio.run(run())

        assert chromium.launch_calls == 1
        assert all(browser is browsers[0] for browser in browsers)

    def test_cancelled_caller_does_not_abort_connection(self):
        """Test that one caller timing out leaves the shared connection attempt running for the rest."""
        chromium = FakeChromium()
        manager, _, _ = make_session_manager(chromium=chromium, mode="local")

        async def run():
            chromium.launch_gate = asyncio.Event()
            impatient = asyncio.ensure_future(manager.get_browser())
            patient = asyncio.ensure_future(manager.get_browser())
            await asyncio.sleep(0)
            impatient.cancel()
            await asyncio.sleep(0)
            chromium.launch_gate.set()
            browser = await patient
            return impatient, browser

        impatient, browser = asyncio.run(run())

        assert impatient.cancelled()
        assert browser is chromium.browsers[0]
        assert chromium.launch_calls == 1
        assert manager.is_connected

    def test_remote_connect_retries(self):
        """Test that remote connection failures are retried."""
        chromium = FakeChromium(connect_failures=2)
        manager, _, _ = make_session_manager(
            chromium=chromium,
            ws_endpoint="wss://browser.example",
            connect_policy=RetryPolicy(max_attempts=3, initial_delay=0.01),
        )

        asyncio.run(manager.get_browser())

        assert chromium.connect_calls == 3
        assert manager.is_connected

    def test_remote_connect_exhausted(self):
        """Test that exhausted connection attempts raise BROWSER_LAUNCH_FAILED."""
        chromium = FakeChromium(connect_failures=10)
        manager, _, _ = make_session_manager(
            chromium=chromium,
            ws_endpoint="wss://browser.example",
            connect_policy=RetryPolicy(max_attempts=2, initial_delay=0.01),
        )

        with pytest.raises(ScrapeError) as exc_info:
            asyncio.run(manager.get_browser())

        assert exc_info.value.code == ErrorCode.BROWSER_LAUNCH_FAILED
        assert chromium.connect_calls == 2

    def test_remote_mode_without_endpoint(self):
        """Test that forced remote mode without an endpoint is a config error."""
        manager, _, _ = make_session_manager(mode="remote", ws_endpoint=None)

        with pytest.raises(ScrapeError) as exc_info:
            asyncio.run(manager.get_browser())

        assert exc_info.value.code == ErrorCode.CONFIG_MISSING

    def test_local_launch_failure(self):
        """Test that a failed local launch raises BROWSER_LAUNCH_FAILED."""
        chromium = FakeChromium(launch_error=RuntimeError("Executable doesn't exist"))
        manager, _, _ = make_session_manager(chromium=chromium, mode="local")

        with pytest.raises(ScrapeError) as exc_info:
            asyncio.run(manager.get_browser())

        assert exc_info.value.code == ErrorCode.BROWSER_LAUNCH_FAILED

    def test_reconnects_after_disconnect(self):
        """Test that a disconnected browser is replaced on next use."""
        manager, chromium, _ = make_session_manager(mode="local")

        async def run():
            first = await manager.get_browser()
            first.connected = False
            second = await manager.get_browser()
            return first, second

        first, second = asyncio.run(run())

        assert first is not second
        assert chromium.launch_calls == 2

    def test_connection_loss_retries_operation_once(self):
        """Test that a dropped connection resets the browser and reruns the operation."""
        manager, chromium, _ = make_session_manager(mode="local")
        calls = []

        async def operation(page, context):
            calls.append(context)
            if len(calls) == 1:
                raise RuntimeError("Target closed")
            return "done"

        result = asyncio.run(manager.with_page(operation))

        assert result == "done"
        assert len(calls) == 2
        assert calls[0].closed
        assert chromium.launch_calls == 2

    def test_timeout_maps_to_scrape_error(self):
        """Test that Playwright timeouts surface as TIMEOUT."""
        manager, _, _ = make_session_manager(mode="local")

        async def operation(page, context):
            raise PlaywrightTimeoutError("Timeout 45000ms exceeded")

        with pytest.raises(ScrapeError) as exc_info:
            asyncio.run(manager.with_page(operation))

        assert exc_info.value.code == ErrorCode.TIMEOUT

    def test_other_errors_propagate(self):
        """Test that unrelated errors are not retried or wrapped."""
        manager, _, _ = make_session_manager(mode="local")
        calls = []

        async def operation(page, context):
            calls.append(1)
            raise ValueError("selector not found")

        with pytest.raises(ValueError):
            asyncio.run(manager.with_page(operation))

        assert len(calls) == 1

    def test_close_stops_playwright(self):
        """Test that close shuts the browser and the driver."""
        manager, chromium, playwright = make_session_manager(mode="local")

        async def run():
            await manager.get_browser()
            await manager.close()

        asyncio.run(run())

        assert chromium.browsers[0].closed
        assert playwright.stopped
        assert not manager.is_connected


async def _return(value):
    return value
