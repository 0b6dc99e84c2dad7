"""Load the list of product codes the pipeline works through."""

import csv
import logging
from pathlib import Path
from typing import List, Union

from catalog_pipeline.ingest.base import ProductListing, normalize_code

logger = logging.getLogger(__name__)


def load_products(path: Union[str, Path]) -> List[ProductListing]:
    """
    Read the product list CSV.

    The file needs a "code" column; "parentCat", "subCat" and "imageUrl"
    are optional. Blank codes are skipped and codes that normalize to an
    already listed code are dropped.

    Args:
        path: CSV file path

    Returns:
        Listings in file order

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the header has no "code" column
    """
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Products CSV file not found at: {csv_path}")

    with open(csv_path, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            logger.warning(f"Products CSV {csv_path} is empty")
            return []
        fieldnames = [name.strip() for name in reader.fieldnames]
        if "code" not in fieldnames:
            raise ValueError('CSV must contain a "code" column')
        reader.fieldnames = fieldnames

        listings: List[ProductListing] = []
        seen = set()
        for row in reader:
            code = (row.get("code") or "").strip()
            if not code:
                continue

            key = normalize_code(code)
            if key in seen:
                logger.warning(f"Duplicate product code {code} in {csv_path.name}, keeping first")
                continue
            seen.add(key)

            listings.append(ProductListing(
                code=code,
                parent_cat=(row.get("parentCat") or "").strip() or None,
                sub_cat=(row.get("subCat") or "").strip() or None,
                image_url=(row.get("imageUrl") or "").strip() or None,
            ))

    logger.info(f"Loaded {len(listings)} products from {csv_path}")
    return listings
