"""
Browser Package

Shared Playwright session management and anti-automation detection.
"""
from src.parcels.browser.blocking import BlockCheck, detect_blocking, ensure_not_blocked
from src.parcels.browser.session import (
    BrowserConfig,
    BrowserSessionManager,
    EnvironmentCheck,
    can_use_playwright_in_this_env,
)

__all__ = [
    "BlockCheck",
    "detect_blocking",
    "ensure_not_blocked",
    "BrowserConfig",
    "BrowserSessionManager",
    "EnvironmentCheck",
    "can_use_playwright_in_this_env",
]
