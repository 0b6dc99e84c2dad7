"""Headless Chromium lifecycle shared by the stock and detail sessions."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Tuple

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from catalog_pipeline.config import BrowserTimings, settings
from catalog_pipeline.ingest.stealth_browser import STEALTH_LAUNCH_ARGS, StealthBrowser, stealth_browser

logger = logging.getLogger(__name__)


class SessionNotStartedError(RuntimeError):
    """A session operation was called before start()."""

    def __init__(self, session_name: str):
        super().__init__(f"{session_name} not started. Call start() before use.")


@asynccontextmanager
async def launch_browser(headless: Optional[bool] = None) -> AsyncIterator[Browser]:
    """
    Start Playwright and launch one Chromium instance.

    Args:
        headless: Override settings.browser_headless

    Yields:
        Browser shared by every session of the run
    """
    headless = settings.browser_headless if headless is None else headless

    playwright = await async_playwright().start()
    browser: Optional[Browser] = None
    try:
        browser = await playwright.chromium.launch(
            headless=headless,
            args=[
                *STEALTH_LAUNCH_ARGS,
                f"--window-size={settings.browser_viewport_width},{settings.browser_viewport_height}",
            ],
        )
        logger.info(f"Launched Chromium (headless={headless})")
        yield browser
    finally:
        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.error(f"Error closing browser: {e}")
        await playwright.stop()


async def open_session_page(
    browser: Browser,
    timings: BrowserTimings,
    stealth: Optional[StealthBrowser] = None,
) -> Tuple[BrowserContext, Page]:
    """
    Open an isolated context with a single page for one session.

    Args:
        browser: Running browser
        timings: Default action/navigation timeouts
        stealth: Stealth settings (defaults to the global instance)

    Returns:
        Tuple of (context, page); the caller owns both
    """
    stealth = stealth or stealth_browser
    context = await browser.new_context(**stealth.get_context_options())
    page = await context.new_page()
    page.set_default_timeout(timings.action_timeout_ms)
    page.set_default_navigation_timeout(timings.navigation_timeout_ms)
    await stealth.setup_page(page)
    return context, page
