"""Browser session against the public product detail site.

The site sits behind an anti-automation interstitial ("One moment...").
Clearing it is only waited for, never required: if it does not clear
in time the page is read as-is.
"""

import asyncio
from typing import Optional
from urllib.parse import urlencode

from playwright.async_api import Browser, BrowserContext, Error as PlaywrightError, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from catalog_pipeline.config import BrowserTimings, DetailSiteConfig
from catalog_pipeline.ingest.base import ProductDetail
from catalog_pipeline.ingest.browser import SessionNotStartedError, open_session_page
from catalog_pipeline.ingest.parsing import extract_product_detail, parse_listing, select_listing_match
from catalog_pipeline.logging_config import get_logger

logger = get_logger(__name__, site="detail")

LISTING_READY_SELECTOR = ".hikashop_products_listing"
PRODUCT_READY_SELECTOR = ".hikashop_product_page"
SETTLE_PAUSE_SECONDS = 0.25

CHALLENGE_CLEARED_SCRIPT = """
() => {
    const title = (document.title || "").toLowerCase();
    const challengeVisible = document.querySelector("#outer-container");
    return !title.includes("one moment") && !challengeVisible;
}
"""


class DetailSession:
    """One page on the detail site, used for one item at a time."""

    def __init__(
        self,
        browser: Browser,
        config: Optional[DetailSiteConfig] = None,
        timings: Optional[BrowserTimings] = None,
    ):
        self.browser = browser
        self.config = config or DetailSiteConfig()
        self.timings = timings or BrowserTimings()

        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "DetailSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def start(self) -> None:
        self._context, self._page = await open_session_page(self.browser, self.timings)

    async def close(self) -> None:
        if self._context is not None:
            try:
                await self._context.close()
            except Exception as e:
                logger.error(f"Error closing detail session: {e}")
        self._context = None
        self._page = None

    def _get_page(self) -> Page:
        if self._page is None:
            raise SessionNotStartedError("Detail session")
        return self._page

    def search_url(self, code: str) -> str:
        query = urlencode({"limitstart": "0", self.config.search_param: code.strip()})
        return f"{self.config.base_url.rstrip('/')}{self.config.search_path}?{query}"

    async def wait_for_challenge(self, page: Page) -> bool:
        """
        Wait for the interstitial to clear.

        Returns:
            False if it had not cleared in time or the wait was interrupted
        """
        try:
            await page.wait_for_function(
                CHALLENGE_CLEARED_SCRIPT,
                timeout=self.timings.challenge_timeout_ms,
            )
            return True
        except PlaywrightTimeoutError:
            logger.warning(f"Challenge did not clear on {page.url}, continuing anyway")
            return False
        except PlaywrightError as e:
            # Interstitial reloads can destroy the evaluation context
            logger.warning(f"Challenge wait interrupted on {page.url}: {e}. Continuing anyway")
            return False

    async def goto_with_challenge(self, url: str, ready_selector: Optional[str] = None) -> None:
        page = self._get_page()
        await page.goto(url, wait_until="domcontentloaded")
        await self.wait_for_challenge(page)

        if ready_selector:
            try:
                await page.wait_for_selector(ready_selector, timeout=self.timings.page_ready_timeout_ms)
            except PlaywrightTimeoutError:
                logger.debug(f"Ready selector {ready_selector} not found on {url}")

        await asyncio.sleep(SETTLE_PAUSE_SECONDS)

    async def fetch(self, code: str) -> Optional[ProductDetail]:
        """
        Search the listing for a code and scrape the matching product page.

        Args:
            code: Product code

        Returns:
            ProductDetail, or None when the listing has no result at all
        """
        async with self._lock:
            page = self._get_page()

            await self.goto_with_challenge(self.search_url(code), LISTING_READY_SELECTOR)
            listing = parse_listing(await page.content(), self.config.base_url)
            match = select_listing_match(listing, code)
            if match is None:
                logger.info(f"No listing result for {code}")
                return None

            await self.goto_with_challenge(match.link, PRODUCT_READY_SELECTOR)
            return extract_product_detail(
                await page.content(),
                code=code,
                origin=self.config.base_url,
                url=match.link,
                listing_image=match.image,
            )
