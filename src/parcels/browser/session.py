"""
Browser Session Manager

Owns the single Playwright browser shared by every scrape in the process.
Each operation gets its own isolated context (and page), which is always
torn down afterwards. Remote CDP endpoints (Browserless and similar) are
used when configured; otherwise a hardened local Chromium is launched.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Literal, Optional, TypeVar, Union

from playwright.async_api import Browser, BrowserContext, Page, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright_stealth import Stealth

from config.settings import settings
from src.parcels.errors import ErrorCode, ScrapeError, is_connection_error
from src.parcels.utils.logger import get_logger
from src.parcels.utils.retry import RetryPolicy, run_async_with_retry

logger = get_logger(__name__)

T = TypeVar("T")

BrowserMode = Literal["remote", "local", "auto"]

HARDENED_LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-features=IsolateOrigins,site-per-process",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
    "--no-sandbox",
    "--disable-setuid-sandbox",
]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

CONTEXT_OPTIONS: Dict[str, Any] = {
    "locale": "en-US",
    "timezone_id": "America/New_York",
    "viewport": {"width": 1920, "height": 1080},
    "java_script_enabled": True,
    "ignore_https_errors": True,
}

# One retry of the whole operation after a dropped connection
OPERATION_ATTEMPTS = 2


@dataclass
class BrowserConfig:
    """Connection and timeout settings for a session manager."""

    ws_endpoint: Optional[str] = None
    mode: BrowserMode = "auto"
    headless: bool = True
    nav_timeout_ms: int = 45000
    op_timeout_ms: int = 60000
    user_agent: str = DEFAULT_USER_AGENT
    connect_policy: RetryPolicy = field(default_factory=RetryPolicy)
    reconnect_delay_seconds: float = 1.0

    @classmethod
    def from_settings(cls) -> "BrowserConfig":
        return cls(
            ws_endpoint=settings.playwright_ws_endpoint,
            headless=settings.playwright_headless,
            nav_timeout_ms=settings.pao_nav_timeout_ms,
            op_timeout_ms=settings.pao_scrape_timeout_ms,
            connect_policy=RetryPolicy(
                max_attempts=settings.browser_connect_retries,
                initial_delay=settings.browser_retry_delay_seconds,
                multiplier=2.0,
            ),
            reconnect_delay_seconds=settings.browser_retry_delay_seconds,
        )

    @property
    def use_remote(self) -> bool:
        return self.mode == "remote" or (self.mode == "auto" and bool(self.ws_endpoint))


@dataclass(frozen=True)
class EnvironmentCheck:
    ok: bool
    reason: Optional[str] = None


def can_use_playwright_in_this_env(
    ws_endpoint: Optional[str] = None,
    production: Optional[bool] = None,
) -> EnvironmentCheck:
    """
    Production deployments have no local Chromium, so a remote endpoint is
    required there. Elsewhere a local launch is always attempted.
    """
    endpoint = ws_endpoint if ws_endpoint is not None else settings.playwright_ws_endpoint
    is_production = settings.is_production if production is None else production

    if is_production and not endpoint:
        return EnvironmentCheck(
            ok=False,
            reason="PLAYWRIGHT_WS_ENDPOINT not set - remote browser required in production",
        )
    return EnvironmentCheck(ok=True)


class BrowserSessionManager:
    """
    Shared browser connection with per-operation isolated contexts.

    Example:
        manager = BrowserSessionManager()
        title = await manager.with_page(lambda page, ctx: page.title())
        await manager.close()
    """

    def __init__(
        self,
        config: Optional[BrowserConfig] = None,
        playwright_factory: Callable[[], Any] = async_playwright,
        stealth: Optional[Union[bool, Stealth]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            config: Connection settings (defaults from application settings)
            playwright_factory: Returns an object with ``start()``; replaced in tests
            stealth: True/False to force stealth patches on or off, or a
                configured ``Stealth`` instance; defaults to settings
            sleep: Async sleep used between attempts
        """
        self.config = config or BrowserConfig.from_settings()
        self._playwright_factory = playwright_factory
        self._sleep = sleep

        if stealth is None:
            stealth = settings.playwright_stealth
        if stealth is True:
            stealth = Stealth()
        self._stealth: Optional[Stealth] = stealth or None

        self._playwright = None
        self._browser: Optional[Browser] = None
        self._connecting: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def get_browser(self) -> Browser:
        """
        Return the connected browser, connecting on first use.

        Concurrent callers share one in-flight connection attempt.

        Raises:
            ScrapeError: BROWSER_LAUNCH_FAILED when connecting is exhausted
        """
        async with self._lock:
            if self.is_connected:
                return self._browser

            if self._browser is not None:
                logger.info("browser_reconnecting")
                self._browser = None

            if self._connecting is None or self._connecting.done():
                self._connecting = asyncio.ensure_future(self._connect())
            task = self._connecting

        # A cancelled caller must not abort the attempt the others are waiting on
        try:
            return await asyncio.shield(task)
        finally:
            if self._connecting is task and task.done():
                self._connecting = None

    async def _connect(self) -> Browser:
        if self._playwright is None:
            self._playwright = await self._playwright_factory().start()
        chromium = self._playwright.chromium

        if self.config.use_remote:
            if not self.config.ws_endpoint:
                raise ScrapeError(
                    "Remote browser mode requires PLAYWRIGHT_WS_ENDPOINT",
                    ErrorCode.CONFIG_MISSING,
                )
            logger.info("browser_connecting_remote", endpoint=self.config.ws_endpoint[:50])
            try:
                browser = await run_async_with_retry(
                    lambda: chromium.connect_over_cdp(self.config.ws_endpoint),
                    self.config.connect_policy,
                    operation="browser_connect",
                    sleep=self._sleep,
                )
            except Exception as e:
                logger.error("browser_connect_failed", attempts=self.config.connect_policy.max_attempts, error=str(e))
                raise ScrapeError(
                    f"Failed to connect to remote browser after "
                    f"{self.config.connect_policy.max_attempts} attempts: {e}",
                    ErrorCode.BROWSER_LAUNCH_FAILED,
                    cause=e,
                ) from e
        else:
            logger.info("browser_launching_local", headless=self.config.headless)
            try:
                browser = await chromium.launch(
                    headless=self.config.headless,
                    args=HARDENED_LAUNCH_ARGS,
                )
            except Exception as e:
                logger.error("browser_launch_failed", error=str(e))
                raise ScrapeError(
                    f"Failed to launch local Chromium: {e}",
                    ErrorCode.BROWSER_LAUNCH_FAILED,
                    cause=e,
                ) from e

        browser.on("disconnected", self._on_disconnected)
        self._browser = browser
        logger.info("browser_connected", remote=self.config.use_remote)
        return browser

    def _on_disconnected(self, browser: Browser) -> None:
        if self._browser is browser:
            logger.warning("browser_disconnected")
            self._browser = None

    def reset(self) -> None:
        """Forget the current connection so the next call reconnects."""
        self._browser = None
        self._connecting = None

    async def with_context(
        self,
        fn: Callable[[BrowserContext], Awaitable[T]],
        config: Optional[BrowserConfig] = None,
        storage_state: Optional[Union[str, Dict[str, Any]]] = None,
    ) -> T:
        """
        Run ``fn`` inside a fresh browser context that is always closed.

        Dropped connections reset the browser and retry the operation once;
        Playwright timeouts surface as ``ScrapeError(TIMEOUT)``; anything else
        propagates unchanged.
        """
        cfg = config or self.config

        for attempt in range(1, OPERATION_ATTEMPTS + 1):
            context: Optional[BrowserContext] = None
            try:
                browser = await self.get_browser()
                options = dict(CONTEXT_OPTIONS, user_agent=cfg.user_agent)
                if storage_state is not None:
                    options["storage_state"] = storage_state
                context = await browser.new_context(**options)
                context.set_default_timeout(cfg.op_timeout_ms)
                context.set_default_navigation_timeout(cfg.nav_timeout_ms)

                return await fn(context)

            except ScrapeError:
                raise
            except PlaywrightTimeoutError as e:
                raise ScrapeError(
                    f"Browser operation timed out: {e}",
                    ErrorCode.TIMEOUT,
                    cause=e,
                ) from e
            except Exception as e:
                if is_connection_error(e) and attempt < OPERATION_ATTEMPTS:
                    logger.warning(
                        "browser_operation_connection_lost",
                        attempt=attempt,
                        max_attempts=OPERATION_ATTEMPTS,
                        error=str(e),
                    )
                    self.reset()
                    await self._sleep(cfg.reconnect_delay_seconds)
                    continue
                raise
            finally:
                if context is not None:
                    await _close_quietly(context)

        raise RuntimeError("with_context exhausted attempts without a result")

    async def with_page(
        self,
        fn: Callable[[Page, BrowserContext], Awaitable[T]],
        config: Optional[BrowserConfig] = None,
        storage_state: Optional[Union[str, Dict[str, Any]]] = None,
    ) -> T:
        """Run ``fn(page, context)`` on a new page in a fresh context."""

        async def run(context: BrowserContext) -> T:
            page = await context.new_page()
            if self._stealth is not None:
                await self._stealth.apply_stealth_async(page)
            return await fn(page, context)

        return await self.with_context(run, config=config, storage_state=storage_state)

    async def close(self) -> None:
        """Close the browser and stop the Playwright driver."""
        browser, self._browser = self._browser, None
        self._connecting = None
        if browser is not None:
            await _close_quietly(browser)
        if self._playwright is not None:
            playwright, self._playwright = self._playwright, None
            try:
                await playwright.stop()
            except Exception as e:
                logger.debug("playwright_stop_failed", error=str(e))
        logger.info("browser_closed")


async def _close_quietly(resource: Any) -> None:
    try:
        await resource.close()
    except Exception as e:
        logger.debug("browser_resource_close_failed", error=str(e))
