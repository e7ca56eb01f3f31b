"""
Blocking Detection

Recognizes anti-automation interstitials (CAPTCHA, Cloudflare challenges,
access-denied and rate-limit pages) from page text. Phrases are specific
enough that ordinary property-detail pages are never classified as blocked.
"""
from dataclasses import dataclass
from typing import Optional

from src.parcels.errors import ErrorCode, ScrapeError
from src.parcels.utils.logger import get_logger

logger = get_logger(__name__)

# (lowercase phrase, reason), checked in order
BLOCK_PATTERNS = (
    # CAPTCHA
    ("recaptcha", "reCAPTCHA detected"),
    ("hcaptcha", "hCaptcha detected"),
    ("solve this captcha", "CAPTCHA detected"),
    ("complete the captcha", "CAPTCHA detected"),
    # Human verification
    ("verify you are human", "Human verification required"),
    ("prove you're not a robot", "Human verification required"),
    ("i'm not a robot", "Human verification required"),
    # Cloudflare / CDN challenge
    ("checking your browser", "Cloudflare protection detected"),
    ("ray id:", "Cloudflare protection detected"),
    ("enable javascript and cookies", "Cloudflare protection detected"),
    # Access denial
    ("access to this page has been denied", "Access denied"),
    ("you have been blocked", "IP blocked"),
    ("your ip has been blocked", "IP blocked"),
    ("your access has been blocked", "Access blocked"),
    # Rate limiting
    ("rate limit exceeded", "Rate limited"),
    ("too many requests", "Too many requests"),
    ("please slow down", "Rate limited"),
    # Bot detection
    ("automated access", "Bot detected"),
    ("unusual traffic", "Bot detected"),
    ("suspicious activity", "Bot detected"),
)


@dataclass(frozen=True)
class BlockCheck:
    blocked: bool
    reason: Optional[str] = None


def detect_blocking(content: Optional[str]) -> BlockCheck:
    """Classify page content as a blocking interstitial or not."""
    if not content:
        return BlockCheck(blocked=False)

    lowered = content.lower()
    for phrase, reason in BLOCK_PATTERNS:
        if phrase in lowered:
            return BlockCheck(blocked=True, reason=reason)
    return BlockCheck(blocked=False)


def ensure_not_blocked(content: Optional[str], context: str) -> None:
    """
    Raise ``ScrapeError(BLOCKED)`` when the page is an anti-automation wall.

    Args:
        content: Page HTML or text
        context: Where the check happened (e.g. "Manatee search results")
    """
    check = detect_blocking(content)
    if check.blocked:
        logger.warning("page_blocked", context=context, reason=check.reason)
        raise ScrapeError(
            f"Blocked on {context}: {check.reason}",
            ErrorCode.BLOCKED,
            debug={"context": context, "reason": check.reason},
        )
