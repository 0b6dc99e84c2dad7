"""Pipeline run: scrape stock and detail, reconcile, add copy, export."""

import asyncio
import logging
from contextlib import AsyncExitStack
from pathlib import Path
from typing import AsyncContextManager, Callable, List, Optional, Sequence, Tuple, Union

from catalog_pipeline.ai.copy_generator import MarketingCopyGenerator
from catalog_pipeline.config import settings
from catalog_pipeline.export.writer import write_catalog
from catalog_pipeline.ingest.base import ProductDetail, ProductListing, StockResult, StockRow
from catalog_pipeline.ingest.cache_store import CacheStore
from catalog_pipeline.normalize.reconciler import (
    CatalogEntry,
    attach_marketing_copy,
    reconcile,
    results_from_snapshot,
)

logger = logging.getLogger(__name__)

# Factories return an unstarted session; entering it starts it
StockSessionFactory = Callable[[], AsyncContextManager]
DetailSessionFactory = Callable[[], AsyncContextManager]


class PipelineRunner:
    """
    Runs the scrape-and-reconcile pipeline over a product list.

    Each source is consulted through the cache first. A browser session is
    only opened once some code actually misses the cache, and each item
    gets one attempt per source per run.
    """

    def __init__(
        self,
        cache_store: CacheStore,
        stock_session_factory: StockSessionFactory,
        detail_session_factory: DetailSessionFactory,
        copy_generator: Optional[MarketingCopyGenerator] = None,
        stock_delay: Optional[float] = None,
        detail_delay: Optional[float] = None,
        copy_delay: Optional[float] = None,
        copy_concurrency: Optional[int] = None,
    ):
        """
        Initialize pipeline runner.

        Args:
            cache_store: Loaded cache store
            stock_session_factory: Returns a new StockSession-like context manager
            detail_session_factory: Returns a new DetailSession-like context manager
            copy_generator: Marketing copy client (None = fallback copy only)
            stock_delay: Seconds between live stock searches
            detail_delay: Seconds between live detail fetches
            copy_delay: Seconds after each copy service call
            copy_concurrency: Concurrent copy service calls
        """
        self.cache_store = cache_store
        self.stock_session_factory = stock_session_factory
        self.detail_session_factory = detail_session_factory
        self.copy_generator = copy_generator
        self.stock_delay = settings.stock_item_delay_seconds if stock_delay is None else stock_delay
        self.detail_delay = settings.detail_item_delay_seconds if detail_delay is None else detail_delay
        self.copy_delay = settings.copy_item_delay_seconds if copy_delay is None else copy_delay
        self.copy_concurrency = copy_concurrency or settings.copy_concurrency

    async def collect_stock(self, listings: Sequence[ProductListing]) -> List[StockResult]:
        """
        Stock rows for every listing, from cache or a live search.

        A failed search yields empty rows for this run only (not cached),
        so the next run tries again.

        Raises:
            AuthenticationError: Stock site login failed
        """
        results: List[StockResult] = []

        async with AsyncExitStack() as stack:
            session = None

            for index, listing in enumerate(listings, start=1):
                code = listing.code
                rows: List[StockRow]

                if self.cache_store.has_stock_rows(code):
                    rows = list(self.cache_store.get(code).stock_rows)
                    logger.info(f"[{index}/{len(listings)}] Using cached stock for {code} ({len(rows)} rows)")
                else:
                    if session is None:
                        session = await stack.enter_async_context(self.stock_session_factory())

                    logger.info(f"[{index}/{len(listings)}] Searching stock for {code}")
                    try:
                        rows = await session.search(code)
                        self.cache_store.record_stock_rows(code, rows)
                        logger.info(f"Found {len(rows)} stock rows for {code}")
                    except Exception as e:
                        logger.error(f"Stock search failed for {code}: {e}")
                        rows = []

                    if self.stock_delay > 0:
                        await asyncio.sleep(self.stock_delay)

                results.append(StockResult(
                    code=code,
                    rows=rows,
                    image_url=listing.image_url,
                    parent_cat=listing.parent_cat,
                    sub_cat=listing.sub_cat,
                ))

        return results

    async def _open_detail_session(self, stack: AsyncExitStack):
        try:
            return await stack.enter_async_context(self.detail_session_factory())
        except Exception as e:
            logger.error(f"Detail session could not start, continuing with cached details only: {e}")
            return None

    async def collect_details(self, listings: Sequence[ProductListing]) -> List[ProductDetail]:
        """
        Detail records for every listing, from cache or a live fetch.

        No listing match is cached as an explicit empty record; a failed
        fetch yields the same empty record for this run only.
        """
        details: List[ProductDetail] = []

        async with AsyncExitStack() as stack:
            session = None
            unavailable = False

            for index, listing in enumerate(listings, start=1):
                code = listing.code

                if self.cache_store.has_detail(code):
                    details.append(self.cache_store.get(code).detail)
                    logger.info(f"[{index}/{len(listings)}] Using cached detail for {code}")
                    continue

                if session is None and not unavailable:
                    session = await self._open_detail_session(stack)
                    unavailable = session is None
                if unavailable:
                    continue

                logger.info(f"[{index}/{len(listings)}] Fetching detail for {code}")
                try:
                    detail = await session.fetch(code)
                    if detail is None:
                        detail = ProductDetail(code=code)
                    self.cache_store.record_detail(code, detail)
                except Exception as e:
                    logger.error(f"Detail fetch failed for {code}: {e}")
                    detail = ProductDetail(code=code)

                details.append(detail)

                if self.detail_delay > 0:
                    await asyncio.sleep(self.detail_delay)

        return details

    async def run(self, listings: Sequence[ProductListing]) -> List[CatalogEntry]:
        """
        Run every stage and return the catalog.

        Args:
            listings: Product list in processing order

        Returns:
            Catalog entries with marketing copy attached
        """
        logger.info(f"Starting pipeline run for {len(listings)} products")

        stock = await self.collect_stock(listings)
        details = await self.collect_details(listings)

        entries = reconcile(stock, details)
        await attach_marketing_copy(
            entries,
            self.copy_generator,
            self.cache_store,
            delay=self.copy_delay,
            concurrency=self.copy_concurrency,
        )

        logger.info(f"Pipeline run complete: {len(entries)} catalog entries")
        return entries

    async def run_and_export(
        self,
        listings: Sequence[ProductListing],
        output_dir: Optional[Union[str, Path]] = None,
    ) -> Tuple[List[CatalogEntry], Path, Path]:
        """Run the pipeline and write the CSV and JSON artifacts."""
        entries = await self.run(listings)
        csv_path, json_path = write_catalog(entries, output_dir)
        return entries, csv_path, json_path


async def run_pipeline(
    products_file: Optional[str] = None,
    output_dir: Optional[str] = None,
) -> Tuple[Path, Path]:
    """
    Full run against the live sites (CLI and scheduler entry point).

    Raises:
        ConfigurationError: Required stock site settings are missing
        FileNotFoundError: The product list does not exist
        AuthenticationError: Stock site login failed
    """
    from catalog_pipeline.ingest.browser import launch_browser
    from catalog_pipeline.ingest.detail_session import DetailSession
    from catalog_pipeline.ingest.product_list import load_products
    from catalog_pipeline.ingest.stock_session import StockSession

    stock_config = settings.stock_site()
    detail_config = settings.detail_site()
    timings = settings.browser_timings()
    listings = load_products(products_file or settings.products_file)

    cache_store = CacheStore()
    cache_store.load()

    async with launch_browser() as browser:
        runner = PipelineRunner(
            cache_store,
            stock_session_factory=lambda: StockSession(browser, stock_config, timings),
            detail_session_factory=lambda: DetailSession(browser, detail_config, timings),
            copy_generator=MarketingCopyGenerator(),
        )
        _, csv_path, json_path = await runner.run_and_export(listings, output_dir)

    return csv_path, json_path


async def export_from_cache(
    products_file: Optional[str] = None,
    output_dir: Optional[str] = None,
) -> Tuple[Path, Path]:
    """
    Reconcile and export from the cache file alone, without a browser.

    Uses the product list for ordering and categories when the file
    exists, otherwise every cached record.
    """
    from catalog_pipeline.ingest.product_list import load_products

    cache_store = CacheStore()
    snapshot = cache_store.load()

    path = Path(products_file or settings.products_file)
    listings = load_products(path) if path.exists() else None

    stock, details = results_from_snapshot(snapshot, listings)
    entries = reconcile(stock, details)
    await attach_marketing_copy(
        entries,
        MarketingCopyGenerator(),
        cache_store,
        delay=settings.copy_item_delay_seconds,
        concurrency=settings.copy_concurrency,
    )
    return write_catalog(entries, output_dir)
