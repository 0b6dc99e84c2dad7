"""Tests for the stock site session against a scripted page."""

from contextlib import asynccontextmanager
from decimal import Decimal

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from catalog_pipeline.config import BrowserTimings, StockSiteConfig
from catalog_pipeline.ingest.browser import SessionNotStartedError
from catalog_pipeline.ingest.stock_session import (
    SUBMIT_SEARCH_SCRIPT,
    AuthenticationError,
    SearchSettleTimeout,
    SessionState,
    StockSession,
)

CONFIG = StockSiteConfig(
    base_url="https://stock.example.com",
    check_stock_path="/check_stock.php",
    username="buyer",
    password="secret",
    search_selector="#ItemCode",
    results_row_selector="#listDiv tr",
)


class FakeStockPage:
    """Records calls and replays canned results."""

    def __init__(self, url="https://stock.example.com/check_stock.php", cell_rows=None, settles=True,
                 landing_url="https://stock.example.com/calculator.php"):
        self.url = url
        self.cell_rows = cell_rows or []
        self.settles = settles
        self.landing_url = landing_url
        self.gotos = []
        self.typed = []
        self.submitted = []
        self.settle_args = []

    async def goto(self, url, **kwargs):
        self.gotos.append(url)
        self.url = url

    async def wait_for_selector(self, selector, **kwargs):
        return None

    async def type(self, selector, text, **kwargs):
        self.typed.append((selector, text))

    async def click(self, selector, **kwargs):
        self.url = self.landing_url

    @asynccontextmanager
    async def expect_navigation(self, **kwargs):
        yield

    async def focus(self, selector):
        return None

    async def evaluate(self, script, arg=None):
        self.submitted.append(arg)

    async def wait_for_event(self, event, timeout=None):
        raise PlaywrightTimeoutError("no full navigation")

    async def wait_for_function(self, script, arg=None, timeout=None):
        self.settle_args.append(arg)
        if not self.settles:
            raise PlaywrightTimeoutError("still loading")

    async def eval_on_selector_all(self, selector, script, arg=None):
        return self.cell_rows

    async def text_content(self, selector, timeout=None):
        return "\n   Loading    results   please wait  \n"


def _session(page, state=SessionState.AUTHENTICATED):
    session = StockSession(browser=None, config=CONFIG, timings=BrowserTimings())
    session._page = page
    session.state = state
    return session


@pytest.mark.asyncio
async def test_login_types_credentials_and_checks_landing():
    """Test stock site login."""
    page = FakeStockPage(url="about:blank")
    session = _session(page, SessionState.UNAUTHENTICATED)

    await session.login()

    assert page.gotos == ["https://stock.example.com/"]
    assert page.typed == [("#UserName1", "buyer"), ("#Pass1", "secret")]
    assert session.state == SessionState.AUTHENTICATED


@pytest.mark.asyncio
async def test_login_rejects_unexpected_landing_page():
    """Test rejected login."""
    page = FakeStockPage(url="about:blank", landing_url="https://stock.example.com/login.php?error=1")
    session = _session(page, SessionState.UNAUTHENTICATED)

    with pytest.raises(AuthenticationError):
        await session.login()

    assert session.state == SessionState.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_ensure_search_page_navigates_only_when_needed():
    """Test search page navigation."""
    page = FakeStockPage(url="https://stock.example.com/calculator.php")
    session = _session(page)

    await session.ensure_search_page()
    await session.ensure_search_page()

    assert page.gotos == ["https://stock.example.com/check_stock.php"]
    assert session.state == SessionState.ON_SEARCH_PAGE


@pytest.mark.asyncio
async def test_search_returns_prefixed_rows():
    """Test stock search results."""
    page = FakeStockPage(cell_rows=[
        ["BP9601", "GREY waterproof Backpack", "1,234", "$19.90"],
        ["BP9602", "NAVY waterproof Backpack", "12", "19.90"],
        ["OTHER", "Not this one", "1", "1.00"],
    ])
    session = _session(page)

    rows = await session.search(" bp96 ")

    assert [row.variant_code for row in rows] == ["BP9601", "BP9602"]
    assert rows[0].quantity == 1234
    assert rows[0].unit_price == Decimal("19.90")
    assert page.submitted[0]["value"] == "bp96"
    assert page.settle_args[0]["prefix"] == "BP96"
    assert page.settle_args[0]["noRecordText"] == "----- No Record -----"
    assert session.state == SessionState.SETTLED


@pytest.mark.asyncio
async def test_search_clears_previous_results_before_submitting():
    """Test a new search empties the results container before the form is submitted."""
    page = FakeStockPage(cell_rows=[])
    session = _session(page)

    await session.search("BP97")

    assert page.submitted[0]["containerSelector"] == CONFIG.results_container_selector
    assert SUBMIT_SEARCH_SCRIPT.index("replaceChildren") < SUBMIT_SEARCH_SCRIPT.index("requestSubmit")


@pytest.mark.asyncio
async def test_search_with_no_record_marker_returns_empty():
    """Test the no record marker."""
    session = _session(FakeStockPage(cell_rows=[]))

    assert await session.search("ZZ99") == []


@pytest.mark.asyncio
async def test_search_timeout_carries_snippet():
    """Test search settle timeout."""
    session = _session(FakeStockPage(settles=False))

    with pytest.raises(SearchSettleTimeout) as exc_info:
        await session.search("BP96")

    assert exc_info.value.code == "BP96"
    assert exc_info.value.snippet == "Loading results please wait"
    assert session.state == SessionState.AUTHENTICATED


@pytest.mark.asyncio
async def test_search_requires_started_session():
    """Test searching before start."""
    session = StockSession(browser=None, config=CONFIG)

    with pytest.raises(SessionNotStartedError):
        await session.search("BP96")


def test_stock_site_urls():
    """Test stock site URLs."""
    assert CONFIG.login_url == "https://stock.example.com/"
    assert CONFIG.check_stock_url == "https://stock.example.com/check_stock.php"
