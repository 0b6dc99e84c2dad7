"""Merge stock results and product detail into one catalog entry per code.

Everything here except attach_marketing_copy is pure: the same inputs
always produce the same entries in the same order.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from catalog_pipeline.ai.copy_generator import CopyGenerationError, MarketingCopyGenerator, fallback_copy
from catalog_pipeline.ingest.base import (
    CacheSnapshot,
    MarketingCopy,
    ProductDetail,
    ProductListing,
    StockResult,
    StockRow,
    normalize_code,
)
from catalog_pipeline.ingest.cache_store import CacheStore

logger = logging.getLogger(__name__)


@dataclass
class CatalogEntry:
    """One product in the exported catalog."""

    code: str
    primary_image: Optional[str] = None
    images: List[str] = field(default_factory=list)
    detail: Optional[ProductDetail] = None
    marketing_copy: Optional[MarketingCopy] = None
    variants: List[StockRow] = field(default_factory=list)
    parent_cat: Optional[str] = None
    sub_cat: Optional[str] = None


def _ordered_images(*groups: Iterable[Optional[str]]) -> List[str]:
    seen = set()
    ordered = []
    for group in groups:
        for url in group:
            if url and url not in seen:
                seen.add(url)
                ordered.append(url)
    return ordered


def build_detail_lookup(details: Iterable[ProductDetail]) -> Dict[str, ProductDetail]:
    """
    Index detail records by normalized code.

    Records without a code are ignored; for duplicate codes the first
    record wins.
    """
    lookup: Dict[str, ProductDetail] = {}
    for detail in details:
        key = normalize_code(detail.code)
        if key and key not in lookup:
            lookup[key] = detail
    return lookup


def merge_stock_with_details(
    stock: Iterable[StockResult],
    detail_lookup: Dict[str, ProductDetail],
) -> List[CatalogEntry]:
    """
    Build one entry per stock result, attaching its detail record.

    Primary image is the first non-empty of the detail's first image, the
    stock-side image hint and the first stock-side image. The image list
    starts with the primary image, then stock images, then detail images.

    Args:
        stock: Stock results in product list order
        detail_lookup: Output of build_detail_lookup

    Returns:
        Entries in stock order, duplicates by normalized code dropped
    """
    entries: List[CatalogEntry] = []
    seen = set()

    for result in stock:
        key = normalize_code(result.code)
        if not key or key in seen:
            continue
        seen.add(key)

        detail = detail_lookup.get(key)
        detail_images = detail.images if detail else []
        candidates = [
            detail_images[0] if detail_images else None,
            result.image_url,
            result.images[0] if result.images else None,
        ]
        primary = next((url for url in candidates if url), None)

        entries.append(CatalogEntry(
            code=result.code.strip(),
            primary_image=primary,
            images=_ordered_images([primary], result.images, detail_images, [result.image_url]),
            detail=detail,
            variants=list(result.rows),
            parent_cat=result.parent_cat,
            sub_cat=result.sub_cat,
        ))

    return entries


def append_detail_only_entries(
    entries: List[CatalogEntry],
    details: Iterable[ProductDetail],
) -> List[CatalogEntry]:
    """
    Add an entry for every detail record with no stock-side entry.

    Such entries have no variants and take their images from the detail
    record alone.
    """
    present = {normalize_code(entry.code) for entry in entries}

    for detail in details:
        key = normalize_code(detail.code)
        if not key or key in present:
            continue
        present.add(key)

        images = _ordered_images(detail.images)
        entries.append(CatalogEntry(
            code=detail.code.strip(),
            primary_image=images[0] if images else None,
            images=images,
            detail=detail,
        ))

    return entries


def reconcile(
    stock: Sequence[StockResult],
    details: Sequence[ProductDetail],
) -> List[CatalogEntry]:
    """
    Produce the catalog from stock results and detail records.

    Args:
        stock: Stock results (stock-side entries keep this order)
        details: Detail records (detail-only entries follow, in this order)

    Returns:
        One entry per distinct normalized code seen in either input
    """
    entries = merge_stock_with_details(stock, build_detail_lookup(details))
    entries = append_detail_only_entries(entries, details)
    logger.info(
        f"Reconciled {len(entries)} catalog entries "
        f"from {len(stock)} stock results and {len(details)} detail records"
    )
    return entries


def results_from_snapshot(
    snapshot: CacheSnapshot,
    listings: Optional[Sequence[ProductListing]] = None,
) -> Tuple[List[StockResult], List[ProductDetail]]:
    """
    Rebuild reconciler inputs from cached records alone.

    With listings, only listed codes are used and every listed code with a
    cached record becomes a stock result (rows may be empty), so listing
    order, categories and image hints carry over as in a live run. Without,
    every record with cached stock rows is a stock result, in file order.

    Returns:
        (stock results, detail records)
    """
    stock: List[StockResult] = []
    details: List[ProductDetail] = []

    if listings is None:
        for record in snapshot.products.values():
            if record.stock_rows is not None:
                stock.append(StockResult(code=record.code, rows=list(record.stock_rows)))
            if record.detail is not None:
                details.append(record.detail)
        return stock, details

    missing = []
    for listing in listings:
        record = snapshot.products.get(normalize_code(listing.code))
        if record is None:
            missing.append(listing.code)
            continue
        stock.append(StockResult(
            code=listing.code,
            rows=list(record.stock_rows or []),
            image_url=listing.image_url,
            parent_cat=listing.parent_cat,
            sub_cat=listing.sub_cat,
        ))
        if record.detail is not None:
            details.append(record.detail)

    if missing:
        logger.warning(f"{len(missing)} listed codes have no cached record: {', '.join(missing)}")

    return stock, details


async def copy_for_entry(
    entry: CatalogEntry,
    generator: Optional[MarketingCopyGenerator],
    cache_store: Optional[CacheStore] = None,
) -> Tuple[MarketingCopy, bool]:
    """
    Resolve marketing copy for one entry.

    Cached complete copy is reused. Otherwise the generator is asked and a
    successful answer is cached; anything else falls back to templates.

    Returns:
        (copy, whether the copy service was called)
    """
    if cache_store is not None and cache_store.has_marketing_copy(entry.code):
        return cache_store.get(entry.code).marketing_copy, False

    if generator is None:
        return fallback_copy(entry.code, entry.detail), False

    called = generator.enabled
    try:
        copy = await generator.generate(entry.code, entry.detail, entry.primary_image)
    except CopyGenerationError as e:
        logger.warning(f"{e}. Using fallback copy.")
        copy = None
    except Exception as e:
        logger.warning(f"Copy generation failed unexpectedly for {entry.code}: {e}. Using fallback copy.")
        copy = None

    if copy is None:
        return fallback_copy(entry.code, entry.detail), called

    if cache_store is not None:
        cache_store.record_marketing_copy(entry.code, copy)
    return copy, called


async def attach_marketing_copy(
    entries: List[CatalogEntry],
    generator: Optional[MarketingCopyGenerator],
    cache_store: Optional[CacheStore] = None,
    delay: float = 0.5,
    concurrency: int = 1,
) -> List[CatalogEntry]:
    """
    Fill marketing copy on every entry.

    Entries are independent, so up to `concurrency` service calls run at
    once; each call is followed by `delay` seconds before its slot frees.

    Args:
        entries: Catalog entries (modified in place)
        generator: Copy service client, or None for fallback copy only
        cache_store: Cache for reuse and persistence of service copy
        delay: Pause after each service call (seconds)
        concurrency: Maximum concurrent service calls

    Returns:
        The same entries, every one with complete copy
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def attach(entry: CatalogEntry) -> None:
        async with semaphore:
            entry.marketing_copy, called = await copy_for_entry(entry, generator, cache_store)
            if called and delay > 0:
                await asyncio.sleep(delay)

    await asyncio.gather(*(attach(entry) for entry in entries))
    return entries
