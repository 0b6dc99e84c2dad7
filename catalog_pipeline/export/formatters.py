"""Turn catalog entries into export rows and documents."""

import re
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from catalog_pipeline.ingest.base import ProductDetail, StockRow
from catalog_pipeline.normalize.reconciler import CatalogEntry

CSV_HEADERS = [
    "Essential",
    "Item Code",
    "Item SKU",
    "Parent Cat",
    "Sub Cat",
    "Price",
    "Quantity",
    "Colour",
    "Hex code",
    "Product Specs",
    "SEO Title",
    "Product Title",
    "Product Description",
    "Long Product Description",
    "Meta Description",
]

# Detail field -> label in the "Product Specs" cell
SPEC_LABELS = [
    ("material", "Material"),
    ("dimension", "Dimension"),
    ("weight", "Weight"),
    ("finish", "Finished"),
    ("function", "Function"),
]

CODE_TOKEN_PATTERN = re.compile(r"^[A-Z0-9]+$")
LETTER_PATTERN = re.compile(r"[A-Za-z]")


def extract_colour(description: Optional[str]) -> str:
    """
    Derive a variant's colour from its stock description.

    All-caps alphanumeric tokens are supplier codes and tokens without any
    letter are noise; both are dropped. The remaining words keep their
    order and get an upper-case first letter.

    Examples:
        "NAVY cotton Tote" -> "Cotton Tote"
        "BP9601 123" -> ""
    """
    if not description:
        return ""

    words = []
    for token in description.split():
        if CODE_TOKEN_PATTERN.match(token) or not LETTER_PATTERN.search(token):
            continue
        words.append(token[0].upper() + token[1:])
    return " ".join(words)


def format_product_specs(detail: Optional[ProductDetail]) -> str:
    """Render known spec fields as "Label : value" lines."""
    if detail is None:
        return ""

    lines = []
    for attr, label in SPEC_LABELS:
        value = getattr(detail, attr)
        if value and value.strip():
            lines.append(f"{label} : {value.strip()}")

    if detail.printing_methods:
        lines.append(f"Printing Methods : {' / '.join(detail.printing_methods)}")

    return "\n".join(lines)


def format_price(price: Decimal) -> str:
    """Plain decimal text without trailing zeros ("19.90" -> "19.9")."""
    return format(price.normalize(), "f")


def catalog_rows(entries: Iterable[CatalogEntry]) -> List[List[str]]:
    """
    Build CSV rows (without the header).

    Each entry yields one main row carrying identity, categories, specs and
    marketing copy, then one row per variant carrying SKU, price, quantity
    and colour only.
    """
    rows: List[List[str]] = []

    for entry in entries:
        copy = entry.marketing_copy
        rows.append([
            "",
            entry.code,
            "",
            entry.parent_cat or "",
            entry.sub_cat or "",
            "",
            "",
            "",
            "",
            format_product_specs(entry.detail),
            copy.seo_title if copy else "",
            copy.product_title if copy else "",
            copy.short_description if copy else "",
            copy.long_description if copy else "",
            copy.meta_description if copy else "",
        ])

        for variant in entry.variants:
            row = [""] * len(CSV_HEADERS)
            row[2] = variant.variant_code
            row[5] = format_price(variant.unit_price)
            row[6] = str(variant.quantity)
            row[7] = extract_colour(variant.description)
            rows.append(row)

    return rows


def catalog_to_dict(entry: CatalogEntry) -> Dict[str, Any]:
    """JSON-ready document for one entry (camelCase keys, prices as numbers)."""
    return {
        "code": entry.code,
        "imageUrl": entry.primary_image,
        "images": list(entry.images),
        "parentCat": entry.parent_cat,
        "subCat": entry.sub_cat,
        "detail": entry.detail.model_dump(mode="json", by_alias=True) if entry.detail else None,
        "marketingContent": (
            entry.marketing_copy.model_dump(mode="json", by_alias=True) if entry.marketing_copy else None
        ),
        "variants": [row.model_dump(mode="json", by_alias=True) for row in entry.variants],
    }


def format_stock_description(rows: Iterable[StockRow]) -> str:
    """
    Bullet list of colour and quantity for a product's stock text.

    Rows whose description yields no colour are left out.

    Example:
        "- Waterproof Backpack: 1,250"
    """
    lines = []
    for row in rows:
        colour = extract_colour(row.description)
        if colour:
            lines.append(f"- {colour}: {row.quantity:,}")
    return "\n".join(lines)
