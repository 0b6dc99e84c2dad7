"""Authenticated browser session against the supplier's stock site.

The stock site has no API. Its search form only works through the page's
own submit logic, and a search either reloads the whole page or refreshes
the results table in place, so every search waits for one of the
distinguishable end states before reading rows.
"""

import asyncio
import time
from enum import Enum
from typing import List, Optional

from playwright.async_api import Browser, BrowserContext, Page, TimeoutError as PlaywrightTimeoutError

from catalog_pipeline.config import BrowserTimings, StockSiteConfig
from catalog_pipeline.ingest.base import StockRow
from catalog_pipeline.ingest.browser import SessionNotStartedError, open_session_page
from catalog_pipeline.ingest.parsing import parse_stock_rows, search_prefix
from catalog_pipeline.logging_config import get_logger

logger = get_logger(__name__, site="stock")

SNIPPET_LENGTH = 200


class AuthenticationError(Exception):
    """Login did not land on the expected page."""

    def __init__(self, url: str, expected: str):
        self.url = url
        self.expected = expected
        super().__init__(f"Login failed: expected to land on '{expected}', got {url}")


class SearchSettleTimeout(Exception):
    """Search results never reached a recognizable end state."""

    def __init__(self, code: str, snippet: str, timeout_ms: int):
        self.code = code
        self.snippet = snippet
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Timed out after {timeout_ms}ms waiting for refreshed results for {code}. "
            f"Table snippet: {snippet}"
        )


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    ON_SEARCH_PAGE = "on_search_page"
    SEARCHING = "searching"
    SETTLED = "settled"


SUBMIT_SEARCH_SCRIPT = """
({ selector, formSelector, containerSelector, value }) => {
    const input = document.querySelector(selector);
    if (!input) {
        throw new Error("Search input not found");
    }

    // Stale rows or "no record" text must not satisfy the settle check
    const container = document.querySelector(containerSelector);
    if (container) {
        container.replaceChildren();
    }

    input.value = value;
    input.dispatchEvent(new Event("input", { bubbles: true }));
    input.dispatchEvent(new Event("change", { bubbles: true }));

    const form = input.form || document.querySelector(formSelector);
    if (!form) {
        throw new Error("Check Stock form not found");
    }

    if (typeof form.requestSubmit === "function") {
        form.requestSubmit();
    } else {
        form.submit();
    }
}
"""

SETTLED_SCRIPT = """
({ containerSelector, rowSelector, cellSelector, prefix, noRecordText }) => {
    const container = document.querySelector(containerSelector);
    if (!container) {
        return false;
    }
    if ((container.textContent || "").includes(noRecordText)) {
        return true;
    }
    return Array.from(document.querySelectorAll(rowSelector)).some((row) => {
        const firstCell = row.querySelector(cellSelector);
        return ((firstCell && firstCell.textContent) || "")
            .trim()
            .toUpperCase()
            .startsWith(prefix);
    });
}
"""

ROW_CELLS_SCRIPT = """
(rows, cellSelector) => rows.map((row) =>
    Array.from(row.querySelectorAll(cellSelector)).map((cell) => (cell.textContent || "").trim())
)
"""


class StockSession:
    """
    One logged-in page on the stock site.

    State: UNAUTHENTICATED -> AUTHENTICATED -> ON_SEARCH_PAGE, then per item
    SEARCHING -> SETTLED. Searches are strictly sequential; the page is never
    handed out to callers.
    """

    def __init__(
        self,
        browser: Browser,
        config: StockSiteConfig,
        timings: Optional[BrowserTimings] = None,
    ):
        """
        Initialize stock session.

        Args:
            browser: Running Playwright browser
            config: Validated stock site configuration
            timings: Timeouts (defaults to BrowserTimings())
        """
        self.browser = browser
        self.config = config
        self.timings = timings or BrowserTimings()
        self.state = SessionState.UNAUTHENTICATED

        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "StockSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def start(self) -> None:
        """
        Open the page, log in and go to the check stock page.

        Raises:
            AuthenticationError: Credentials or site structure changed
        """
        self._context, self._page = await open_session_page(self.browser, self.timings)
        await self.login()
        await self.ensure_search_page()

    async def close(self) -> None:
        if self._context is not None:
            try:
                await self._context.close()
            except Exception as e:
                logger.error(f"Error closing stock session: {e}")
        self._context = None
        self._page = None
        self.state = SessionState.UNAUTHENTICATED

    def _get_page(self) -> Page:
        if self._page is None:
            raise SessionNotStartedError("Stock session")
        return self._page

    async def login(self) -> None:
        page = self._get_page()
        cfg = self.config

        await page.goto(cfg.login_url, wait_until="domcontentloaded")
        await page.wait_for_selector(cfg.login_user_selector, timeout=self.timings.page_ready_timeout_ms)
        await page.type(cfg.login_user_selector, cfg.username, delay=25)
        await page.type(cfg.login_password_selector, cfg.password, delay=25)

        async with page.expect_navigation(wait_until="domcontentloaded"):
            await page.click(cfg.login_submit_selector)

        if cfg.landing_path not in page.url:
            raise AuthenticationError(page.url, cfg.landing_path)

        self.state = SessionState.AUTHENTICATED
        logger.info("Logged in to stock site")

    async def ensure_search_page(self) -> None:
        """Navigate to the check stock page unless already there."""
        page = self._get_page()
        if self.state == SessionState.UNAUTHENTICATED:
            raise SessionNotStartedError("Stock session")

        if self.config.check_stock_path not in page.url:
            await page.goto(self.config.check_stock_url, wait_until="domcontentloaded")

        await page.wait_for_selector(
            self.config.search_selector,
            timeout=self.timings.page_ready_timeout_ms,
        )
        self.state = SessionState.ON_SEARCH_PAGE

    async def _wait_for_navigation(self, page: Page) -> bool:
        try:
            await page.wait_for_event(
                "domcontentloaded",
                timeout=self.timings.navigation_race_timeout_ms,
            )
            return True
        except PlaywrightTimeoutError:
            return False

    async def _results_snippet(self, page: Page) -> str:
        try:
            text = await page.text_content(
                self.config.results_container_selector,
                timeout=self.timings.page_ready_timeout_ms,
            )
        except Exception as e:
            logger.debug(f"Could not read results container: {e}")
            return ""
        return " ".join((text or "").split())[:SNIPPET_LENGTH]

    async def search(self, code: str) -> List[StockRow]:
        """
        Search one product code and read its variant rows.

        Args:
            code: Product code as listed (case/whitespace insensitive)

        Returns:
            Variant rows whose code starts with the search prefix; empty
            when the site shows its "no record" marker

        Raises:
            SearchSettleTimeout: Neither results nor "no record" appeared
        """
        async with self._lock:
            page = self._get_page()
            await self.ensure_search_page()

            prefix = search_prefix(code)
            cfg = self.config
            self.state = SessionState.SEARCHING
            started = time.monotonic()

            try:
                await page.focus(cfg.search_selector)

                # Full reload or in-place refresh: listen before submitting
                navigation = asyncio.create_task(self._wait_for_navigation(page))
                try:
                    await page.evaluate(
                        SUBMIT_SEARCH_SCRIPT,
                        {
                            "selector": cfg.search_selector,
                            "formSelector": cfg.form_selector,
                            "containerSelector": cfg.results_container_selector,
                            "value": code.strip(),
                        },
                    )
                except BaseException:
                    navigation.cancel()
                    raise
                navigated = await navigation

                try:
                    await page.wait_for_function(
                        SETTLED_SCRIPT,
                        arg={
                            "containerSelector": cfg.results_container_selector,
                            "rowSelector": cfg.results_row_selector,
                            "cellSelector": cfg.cell_selector,
                            "prefix": prefix,
                            "noRecordText": cfg.no_record_text,
                        },
                        timeout=self.timings.search_settle_timeout_ms,
                    )
                except PlaywrightTimeoutError:
                    snippet = await self._results_snippet(page)
                    raise SearchSettleTimeout(code, snippet, self.timings.search_settle_timeout_ms)

                cell_rows = await page.eval_on_selector_all(
                    cfg.results_row_selector,
                    ROW_CELLS_SCRIPT,
                    cfg.cell_selector,
                )
            except BaseException:
                self.state = SessionState.AUTHENTICATED
                raise

            rows = parse_stock_rows(cell_rows, prefix)
            self.state = SessionState.SETTLED
            logger.debug(
                f"Search for {code} settled in {time.monotonic() - started:.1f}s "
                f"(navigated={navigated}, rows={len(rows)})"
            )
            return rows
