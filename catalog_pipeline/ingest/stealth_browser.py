"""Stealth tweaks for Playwright pages.

Hides the most obvious automation markers so the detail site's
interstitial and the stock site's login page treat the session like a
regular desktop browser.
"""

import logging
from typing import Any, Dict, List

from playwright.async_api import Page

from catalog_pipeline.config import settings

logger = logging.getLogger(__name__)


STEALTH_LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-infobars",
]

STEALTH_INIT_SCRIPTS: List[str] = [
    # Hide webdriver property
    """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => false
    });
    """,

    # Override permissions
    """
    const originalQuery = window.navigator.permissions.query;
    window.navigator.permissions.query = (parameters) => (
        parameters.name === 'notifications' ?
            Promise.resolve({ state: Notification.permission }) :
            originalQuery(parameters)
    );
    """,

    # Mock plugins
    """
    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5]
    });
    """,

    # Mock languages
    """
    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en']
    });
    """,

    # Chrome runtime
    """
    window.chrome = {
        runtime: {}
    };
    """,
]


class StealthBrowser:
    """
    Applies stealth settings to Playwright contexts and pages.

    Features:
    - WebDriver property hiding
    - Plugin/language mocks
    - Fixed desktop user agent and viewport
    """

    def __init__(self, user_agent: str | None = None, viewport: Dict[str, int] | None = None):
        self.user_agent = user_agent or settings.browser_user_agent
        self.viewport = viewport or {
            "width": settings.browser_viewport_width,
            "height": settings.browser_viewport_height,
        }

    def get_context_options(self) -> Dict[str, Any]:
        """
        Get Playwright context options with stealth settings.

        Returns:
            Dict of context options
        """
        return {
            "viewport": dict(self.viewport),
            "user_agent": self.user_agent,
            "locale": "en-US",
            "ignore_https_errors": True,
        }

    async def setup_page(self, page: Page) -> None:
        """
        Inject stealth scripts into a page before any navigation.

        Args:
            page: Playwright page object
        """
        for script in STEALTH_INIT_SCRIPTS:
            try:
                await page.add_init_script(script)
            except Exception as e:
                logger.debug(f"Error injecting stealth script: {e}")


# Global stealth browser instance
stealth_browser = StealthBrowser()
