"""HTML and text parsing helpers for the stock and detail sites.

Everything here is pure: the browser sessions hand over page HTML or cell
text and get typed records back, so the extraction rules can be tested
without a browser.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional
from urllib.parse import urljoin, urlparse

from selectolax.lexbor import LexborHTMLParser, LexborNode

from catalog_pipeline.ingest.base import ProductDetail, StockRow, normalize_code

logger = logging.getLogger(__name__)


# Canonical spec field -> label synonyms (already normalized: lowercase, letters only)
SPEC_FIELD_ALIASES: Dict[str, List[str]] = {
    "material": ["material", "materials"],
    "dimension": ["dimension", "dimensions", "size"],
    "weight": ["weight"],
    "finish": ["finished", "finish", "finishing"],
    "function": ["function", "functions"],
    "printing_methods": ["printingmethods", "printingmethod", "printing"],
}

LABEL_TO_FIELD: Dict[str, str] = {
    alias: field_name
    for field_name, aliases in SPEC_FIELD_ALIASES.items()
    for alias in aliases
}

PRIMARY_SPEC_TABLE_SELECTORS = [
    "#hikashop_product_description_main table",
    "div[id^='hikashop_product_description_'] table",
    "div[id^='hikashop_product_custom_value_'] table",
]
FALLBACK_SPEC_ROW_SELECTOR = ".hikashop_product_page tr"

IMAGE_ANCHOR_SELECTOR = "[id^='hikashop_product_image'] a[href]"
IMAGE_TAG_SELECTOR = "[id^='hikashop_product_image'] img[src]"

VARIANT_NAME_SELECTOR = "[id^='hikashop_product_name_']"
FALLBACK_NAME_SELECTORS = ["[itemprop='name']", ".hikashop_product_name_main", "h1"]

LISTING_ITEM_SELECTOR = ".hikashop_products_listing .hikashop_product"


@dataclass
class ListingResult:
    """One product tile on the detail site's listing page."""

    title: Optional[str]
    link: str
    image: Optional[str] = None


# =============================================================================
# Stock site
# =============================================================================

def search_prefix(code: str) -> str:
    """Prefix every matching variant code starts with (trimmed, uppercased)."""
    return code.strip().upper()


def parse_quantity(text: Optional[str]) -> int:
    """
    Parse a stock quantity such as "1,234".

    Returns:
        Non-negative integer, 0 when the text holds no number
    """
    cleaned = (text or "").replace(",", "").strip()
    try:
        value = int(Decimal(cleaned))
    except (InvalidOperation, ValueError, OverflowError):
        return 0
    return max(value, 0)


def parse_price(text: Optional[str]) -> Decimal:
    """
    Parse a unit price such as "$12.50 SGD".

    Everything except digits and dots is dropped before parsing.

    Returns:
        Non-negative Decimal, 0 when nothing parseable remains
    """
    cleaned = re.sub(r"[^0-9.]", "", text or "")
    try:
        return Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return Decimal("0")


def parse_stock_rows(cell_rows: Iterable[List[str]], prefix: str) -> List[StockRow]:
    """
    Convert raw result-table cell text into stock rows.

    Args:
        cell_rows: Per table row, the text of its data cells in column order
                   (code, description, quantity, price)
        prefix: Uppercased search prefix; rows whose first cell does not
                start with it are dropped

    Returns:
        Stock rows in table order
    """
    rows: List[StockRow] = []
    for cells in cell_rows:
        cells = [(c or "").strip() for c in cells]
        variant_code = cells[0] if cells else ""
        if not variant_code or not variant_code.upper().startswith(prefix):
            continue

        rows.append(StockRow(
            variant_code=variant_code,
            description=cells[1] if len(cells) > 1 else "",
            quantity=parse_quantity(cells[2] if len(cells) > 2 else ""),
            unit_price=parse_price(cells[3] if len(cells) > 3 else ""),
        ))
    return rows


# =============================================================================
# Detail site
# =============================================================================

def _clean_text(node: Optional[LexborNode]) -> str:
    if node is None:
        return ""
    return " ".join((node.text(deep=True) or "").split())


def make_absolute(url: Optional[str], origin: str) -> Optional[str]:
    """Resolve a possibly relative URL against the site origin."""
    if not url or not url.strip():
        return None
    absolute = urljoin(origin.rstrip("/") + "/", url.strip())
    if urlparse(absolute).scheme not in ("http", "https"):
        return None
    return absolute


def unique(values: Iterable[Optional[str]]) -> List[str]:
    """Ordered de-duplication that drops empty values."""
    return list(dict.fromkeys(v for v in values if v))


def parse_listing(html: str, origin: str) -> List[ListingResult]:
    """
    Parse the listing (search result) page.

    Tiles without any link are skipped.
    """
    tree = LexborHTMLParser(html)
    results: List[ListingResult] = []

    for node in tree.css(LISTING_ITEM_SELECTOR):
        name_anchor = node.css_first(".hikashop_product_name a")
        title = _clean_text(name_anchor) or None

        href = name_anchor.attributes.get("href") if name_anchor is not None else None
        if not href:
            first_anchor = node.css_first("a[href]")
            href = first_anchor.attributes.get("href") if first_anchor is not None else None
        link = make_absolute(href, origin)
        if not link:
            continue

        image = None
        img = node.css_first("img[src]")
        if img is not None:
            image = make_absolute(img.attributes.get("src"), origin)
        if not image:
            image_anchor = node.css_first("a[href*='/images/']")
            if image_anchor is not None:
                image = make_absolute(image_anchor.attributes.get("href"), origin)

        results.append(ListingResult(title=title, link=link, image=image))

    return results


def select_listing_match(results: List[ListingResult], code: str) -> Optional[ListingResult]:
    """Prefer a tile whose title contains the code, else the first tile."""
    if not results:
        return None

    normalized = normalize_code(code)
    for result in results:
        if result.title and normalized in result.title.lower():
            return result
    return results[0]


def normalize_label(label: str) -> str:
    """Lowercase and drop everything that is not a letter ("Printing Method:" -> "printingmethod")."""
    return re.sub(r"[^a-z]", "", (label or "").lower())


def _row_cells(row: LexborNode) -> List[LexborNode]:
    return [child for child in row.iter() if child.tag in ("td", "th")]


def _collect_spec_rows(rows: Iterable[LexborNode], specs: Dict[str, str]) -> None:
    for row in rows:
        cells = _row_cells(row)
        if len(cells) < 2:
            continue

        field_name = LABEL_TO_FIELD.get(normalize_label(_clean_text(cells[0])))
        if not field_name or field_name in specs:
            continue

        value = _clean_text(cells[1])
        if value:
            specs[field_name] = value


def extract_specs(tree: LexborHTMLParser) -> Dict[str, str]:
    """
    Map specification rows to canonical fields.

    The description tables are read first; only when they yield nothing
    is every row of the product page scanned. The first value seen for a
    field wins.
    """
    specs: Dict[str, str] = {}

    for selector in PRIMARY_SPEC_TABLE_SELECTORS:
        for table in tree.css(selector):
            _collect_spec_rows(table.css("tr"), specs)

    if not specs:
        _collect_spec_rows(tree.css(FALLBACK_SPEC_ROW_SELECTOR), specs)

    return specs


def split_printing_methods(value: Optional[str]) -> List[str]:
    """Split "Silkscreen, Heat Transfer / Embroidery" into unique methods."""
    if not value:
        return []
    return unique(part.strip() for part in re.split(r"[,/]", value))


def extract_images(tree: LexborHTMLParser, origin: str) -> List[str]:
    """Full-size image links from the image region, falling back to <img> sources."""
    images = unique(
        make_absolute(anchor.attributes.get("href"), origin)
        for anchor in tree.css(IMAGE_ANCHOR_SELECTOR)
    )
    if images:
        return images

    return unique(
        make_absolute(img.attributes.get("src"), origin)
        for img in tree.css(IMAGE_TAG_SELECTOR)
    )


def extract_display_name(tree: LexborHTMLParser) -> Optional[str]:
    """Product name without the variant suffix ("Name: Grey" -> "Name")."""
    raw_name = ""
    for node in tree.css(VARIANT_NAME_SELECTOR):
        text = _clean_text(node)
        if text and "Please select" not in text:
            raw_name = text
            break

    if not raw_name:
        for selector in FALLBACK_NAME_SELECTORS:
            raw_name = _clean_text(tree.css_first(selector))
            if raw_name:
                break

    if not raw_name:
        return None
    return raw_name.split(":")[0].strip() or None


def extract_product_detail(
    html: str,
    code: str,
    origin: str,
    url: Optional[str] = None,
    listing_image: Optional[str] = None,
) -> ProductDetail:
    """
    Build a ProductDetail from a product page.

    Args:
        html: Product page HTML
        code: Product code the page was searched for
        origin: Site origin used to resolve relative image URLs
        url: Product page URL
        listing_image: Listing thumbnail, used when the page has no images

    Returns:
        ProductDetail (possibly without specs)
    """
    tree = LexborHTMLParser(html)
    specs = extract_specs(tree)

    images = extract_images(tree, origin)
    if not images and listing_image:
        images = [listing_image]

    return ProductDetail(
        code=code,
        url=url,
        display_name=extract_display_name(tree),
        material=specs.get("material"),
        dimension=specs.get("dimension"),
        weight=specs.get("weight"),
        finish=specs.get("finish"),
        function=specs.get("function"),
        printing_methods=split_printing_methods(specs.get("printing_methods")),
        images=images,
    )
