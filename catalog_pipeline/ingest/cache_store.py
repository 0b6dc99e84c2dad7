"""Persistent per-product cache that makes pipeline runs resumable.

The cache file maps a normalized product code to whatever each source has
produced so far. Presence of a sub-record is the only signal used to skip
re-fetching that source, so an empty-but-present result is never fetched
again until someone edits or deletes the file.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from catalog_pipeline.config import settings
from catalog_pipeline.ingest.base import (
    CachedRecord,
    CacheSnapshot,
    MarketingCopy,
    ProductDetail,
    StockRow,
    normalize_code,
)

logger = logging.getLogger(__name__)


class CacheStore:
    """
    JSON-file backed cache of scraped and generated product data.

    Features:
    - Load once at process start (missing or corrupt file -> empty cache)
    - Merge-on-set per normalized code
    - Full rewrite on save, never raising past a logged warning
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        """
        Initialize cache store.

        Args:
            path: Cache file path (defaults to settings.cache_file)
        """
        self.path = Path(path or settings.cache_file)
        self._snapshot = CacheSnapshot()

    @property
    def snapshot(self) -> CacheSnapshot:
        return self._snapshot

    def load(self) -> CacheSnapshot:
        """
        Load the cache file into memory.

        Returns:
            The loaded snapshot, or an empty one if the file is absent or
            cannot be parsed
        """
        if not self.path.exists():
            logger.info(f"[Cache] No cache file at {self.path}, starting fresh")
            self._snapshot = CacheSnapshot()
            return self._snapshot

        try:
            content = self.path.read_text(encoding="utf-8")
            self._snapshot = CacheSnapshot.model_validate_json(content)
            logger.info(f"[Cache] Loaded cache with {len(self._snapshot.products)} products")
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"[Cache] Failed to load cache, starting fresh: {e}")
            self._snapshot = CacheSnapshot()

        return self._snapshot

    def save(self) -> bool:
        """
        Persist the whole snapshot.

        Writes to a temporary file beside the cache and swaps it in, so a
        crash mid-write leaves the previous cache intact.

        Returns:
            True if the cache was written
        """
        try:
            payload = self._snapshot.model_dump_json(by_alias=True, exclude_none=True, indent=2)
            directory = self.path.parent if str(self.path.parent) else Path(".")
            directory.mkdir(parents=True, exist_ok=True)

            fd, tmp_name = tempfile.mkstemp(prefix=".cache-", suffix=".json", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, ValueError) as e:
            logger.warning(f"[Cache] Failed to save cache, this run's additions may be lost: {e}")
            return False

        logger.debug(f"[Cache] Saved cache with {len(self._snapshot.products)} products")
        return True

    def get(self, code: str) -> Optional[CachedRecord]:
        return self._snapshot.products.get(normalize_code(code))

    def has_stock_rows(self, code: str) -> bool:
        """Stock rows were fetched before (an empty list still counts)."""
        record = self.get(code)
        return record is not None and record.stock_rows is not None

    def has_detail(self, code: str) -> bool:
        record = self.get(code)
        return record is not None and record.detail is not None

    def has_marketing_copy(self, code: str) -> bool:
        """Marketing copy is present and every required field is non-blank."""
        record = self.get(code)
        return (
            record is not None
            and record.marketing_copy is not None
            and record.marketing_copy.is_complete
        )

    def _get_or_create(self, code: str) -> CachedRecord:
        key = normalize_code(code)
        record = self._snapshot.products.get(key)
        if record is None:
            record = CachedRecord(code=code.strip())
            self._snapshot.products[key] = record
        return record

    def set_stock_rows(self, code: str, rows: List[StockRow]) -> None:
        self._get_or_create(code).stock_rows = list(rows)

    def set_detail(self, code: str, detail: ProductDetail) -> None:
        self._get_or_create(code).detail = detail

    def set_marketing_copy(self, code: str, copy: MarketingCopy) -> None:
        self._get_or_create(code).marketing_copy = copy

    def record_stock_rows(self, code: str, rows: List[StockRow]) -> bool:
        """Set stock rows and persist in the same step."""
        self.set_stock_rows(code, rows)
        return self.save()

    def record_detail(self, code: str, detail: ProductDetail) -> bool:
        self.set_detail(code, detail)
        return self.save()

    def record_marketing_copy(self, code: str, copy: MarketingCopy) -> bool:
        self.set_marketing_copy(code, copy)
        return self.save()
