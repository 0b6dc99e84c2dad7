"""Push cached stock levels into the storefront database."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_pipeline.db.models import Product, ProductColorOption
from catalog_pipeline.export.formatters import format_stock_description
from catalog_pipeline.ingest.base import CachedRecord, CacheSnapshot
from catalog_pipeline.ingest.cache_store import CacheStore

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


@dataclass
class SyncSummary:
    """Counts from one sync pass."""

    products_updated: int = 0
    products_missing: int = 0
    variants_updated: int = 0
    variants_missing: int = 0
    errors: int = 0


async def _sync_product(record: CachedRecord, session_factory: SessionFactory, summary: SyncSummary) -> None:
    stock_description = format_stock_description(record.stock_rows or [])
    logger.info(f"Update product {record.code}: start")

    try:
        async with session_factory() as db:
            result = await db.execute(
                update(Product)
                .where(Product.sku == record.code)
                .values(stock_description=stock_description)
            )
            await db.commit()
    except Exception as e:
        logger.warning(f"Update product {record.code}: error {e}")
        summary.errors += 1
        return

    if result.rowcount:
        summary.products_updated += 1
        logger.info(f"Update product {record.code}: success")
    else:
        summary.products_missing += 1
        logger.warning(f"Update product {record.code}: not found")


async def _sync_variants(record: CachedRecord, session_factory: SessionFactory, summary: SyncSummary) -> None:
    for row in record.stock_rows or []:
        try:
            async with session_factory() as db:
                query = select(ProductColorOption).where(ProductColorOption.sku == row.variant_code).limit(1)
                option = (await db.execute(query)).scalar_one_or_none()
                if option is None:
                    summary.variants_missing += 1
                    logger.warning(f'Update color SKU "{row.variant_code}": not found')
                    continue

                option.stock = row.quantity
                await db.commit()
        except Exception as e:
            summary.errors += 1
            logger.warning(f'Update color SKU "{row.variant_code}": error {e}')
            continue

        summary.variants_updated += 1
        logger.debug(f'Update color SKU "{row.variant_code}": success')


async def sync_cache_to_products(
    snapshot: CacheSnapshot,
    session_factory: SessionFactory,
) -> SyncSummary:
    """
    Update storefront stock from a cache snapshot.

    For every cached product with stock rows, the product's stock
    description is rewritten as a colour/quantity bullet list and each
    variant's colour option gets the variant's quantity. Missing rows and
    per-record failures are logged and counted, never raised.

    Args:
        snapshot: Loaded cache snapshot
        session_factory: Callable returning a new AsyncSession

    Returns:
        SyncSummary with per-kind counts
    """
    summary = SyncSummary()

    for record in snapshot.products.values():
        if record.stock_rows is None:
            continue
        await _sync_product(record, session_factory, summary)
        await _sync_variants(record, session_factory, summary)

    logger.info(
        f"Product sync complete: {summary.products_updated} products updated, "
        f"{summary.products_missing} not found, {summary.variants_updated} variants updated, "
        f"{summary.variants_missing} not found, {summary.errors} errors"
    )
    return summary


async def run_product_sync(
    cache_path: Optional[str] = None,
    session_factory: Optional[SessionFactory] = None,
) -> SyncSummary:
    """Load the cache file and sync it (scheduler and CLI entry point)."""
    if session_factory is None:
        from catalog_pipeline.db.session import AsyncSessionLocal

        session_factory = AsyncSessionLocal

    cache_store = CacheStore(cache_path)
    snapshot = cache_store.load()
    return await sync_cache_to_products(snapshot, session_factory)
