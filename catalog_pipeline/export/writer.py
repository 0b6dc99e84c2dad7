"""Write the catalog CSV and JSON artifacts."""

import csv
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

from catalog_pipeline.config import settings
from catalog_pipeline.export.formatters import CSV_HEADERS, catalog_rows, catalog_to_dict
from catalog_pipeline.normalize.reconciler import CatalogEntry

logger = logging.getLogger(__name__)

EXPORT_PREFIX = "mygift-stock-and-specs"


def timestamped_filename(prefix: str, extension: str, now: Optional[datetime] = None) -> str:
    """
    Build "<prefix>-YYYY-MM-DDTHH-MM-SS.<extension>" in UTC.

    Args:
        prefix: File name prefix
        extension: Extension without the dot
        now: Timestamp to use (defaults to the current time)
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"{prefix}-{now.strftime('%Y-%m-%dT%H-%M-%S')}.{extension}"


def write_catalog(
    entries: Sequence[CatalogEntry],
    output_dir: Optional[Union[str, Path]] = None,
    now: Optional[datetime] = None,
) -> Tuple[Path, Path]:
    """
    Write the catalog as a CSV sheet and a JSON document sharing one name.

    Args:
        entries: Reconciled catalog entries
        output_dir: Target directory (defaults to settings.output_dir)
        now: Timestamp for the file names

    Returns:
        (csv_path, json_path)
    """
    directory = Path(output_dir or settings.output_dir)
    directory.mkdir(parents=True, exist_ok=True)

    csv_path = directory / timestamped_filename(EXPORT_PREFIX, "csv", now)
    json_path = csv_path.with_suffix(".json")

    with open(csv_path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        writer.writerows(catalog_rows(entries))
    logger.info(f"CSV file generated: {csv_path}")

    with open(json_path, "w", encoding="utf-8") as f:
        json.dump([catalog_to_dict(entry) for entry in entries], f, indent=2, ensure_ascii=False)
    logger.info(f"JSON file generated: {json_path}")

    return csv_path, json_path
