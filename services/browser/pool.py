"""
Playwright Browser Pool

Provides browser instance reuse for solve-page requests.
A single shared browser serves many isolated contexts.

Usage:
    from services.browser.pool import get_browser_context

    async with get_browser_context() as context:
        page = await context.new_page()
        await page.goto(url)
        ...
"""

import asyncio
from typing import Optional, Dict
from contextlib import asynccontextmanager

from config.settings import settings
from utils.logging import get_logger

logger = get_logger(__name__)

# =============================================================================
# Browser Pool Configuration
# =============================================================================

# Singleton browser instance (shared across requests)
_browser = None
_playwright = None
_browser_lock: Optional[asyncio.Lock] = None

# Track active contexts for cleanup
_active_contexts = 0
MAX_CONTEXTS = settings.BROWSER_POOL_MAX_CONTEXTS

# Semaphore for strict concurrency control
_context_semaphore: Optional[asyncio.Semaphore] = None


def _get_semaphore() -> asyncio.Semaphore:
    """Get or create the context semaphore."""
    global _context_semaphore
    if _context_semaphore is None:
        _context_semaphore = asyncio.Semaphore(MAX_CONTEXTS)
    return _context_semaphore


def _get_lock() -> asyncio.Lock:
    global _browser_lock
    if _browser_lock is None:
        _browser_lock = asyncio.Lock()
    return _browser_lock


BROWSER_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',  # Prevents crashes in Docker
    '--disable-gpu',
    '--disable-background-networking',
    '--disable-extensions',
    '--mute-audio',
    '--no-first-run',
]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)


async def _get_browser(headless: bool = True):
    """
    Get or create the shared browser instance.

    Uses a lock to prevent multiple simultaneous browser launches.
    """
    global _browser, _playwright

    async with _get_lock():
        if _browser is None or not _browser.is_connected():
            logger.info("🌐 Launching shared browser instance...")

            from playwright.async_api import async_playwright

            _playwright = await async_playwright().start()
            _browser = await _playwright.chromium.launch(
                headless=headless,
                args=BROWSER_ARGS
            )
            logger.info("✅ Browser launched and ready")

        return _browser


@asynccontextmanager
async def get_browser_context(
    viewport: Optional[Dict[str, int]] = None,
    user_agent: Optional[str] = None,
    locale: str = "en-US",
    headless: Optional[bool] = None,
):
    """
    Get a browser context from the pool.

    Each context is isolated (like incognito) but shares the browser instance.

    Args:
        viewport: Custom viewport size (default: 1280x900)
        user_agent: Custom user agent string
        locale: Browser locale (default: en-US)
        headless: Whether to run in headless mode (default: settings.BROWSER_HEADLESS)
    """
    global _active_contexts

    if headless is None:
        headless = settings.BROWSER_HEADLESS

    async with _get_semaphore():
        _active_contexts += 1
        logger.debug(f"Context acquired ({_active_contexts}/{MAX_CONTEXTS} active)")

        try:
            browser = await _get_browser(headless=headless)
            context = await browser.new_context(
                viewport=viewport or {'width': 1280, 'height': 900},
                user_agent=user_agent or DEFAULT_USER_AGENT,
                locale=locale,
            )
        except Exception:
            _active_contexts -= 1
            raise

        try:
            yield context
        finally:
            _active_contexts -= 1
            await context.close()
            logger.debug(f"Context released ({_active_contexts}/{MAX_CONTEXTS} active)")


async def close_browser_pool():
    """
    Close the browser pool.

    Called on application shutdown.
    """
    global _browser, _playwright

    if _browser:
        await _browser.close()
        logger.info("Browser pool closed")
        _browser = None

    if _playwright:
        await _playwright.stop()
        _playwright = None


def get_pool_status() -> dict:
    """Get current browser pool status."""
    return {
        "browser_running": _browser is not None and _browser.is_connected(),
        "active_contexts": _active_contexts,
        "max_contexts": MAX_CONTEXTS,
    }
