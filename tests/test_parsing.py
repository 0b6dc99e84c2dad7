"""Tests for stock row and product page parsing."""

from decimal import Decimal

from selectolax.lexbor import LexborHTMLParser

from catalog_pipeline.ingest.parsing import (
    ListingResult,
    extract_display_name,
    extract_images,
    extract_product_detail,
    extract_specs,
    make_absolute,
    normalize_label,
    parse_listing,
    parse_price,
    parse_quantity,
    parse_stock_rows,
    search_prefix,
    select_listing_match,
    split_printing_methods,
)

ORIGIN = "https://www.mygiftuniversal.com"

PRODUCT_PAGE = """
<html><body>
<div class="hikashop_product_page">
  <span id="hikashop_product_name_main_1">Please select a colour</span>
  <span id="hikashop_product_name_2">Summit Backpack: Grey</span>
  <div id="hikashop_product_image_main">
    <a href="/images/com_hikashop/upload/bp9601_grey.jpeg"><img src="/thumb/bp9601.jpeg"></a>
    <a href="/images/com_hikashop/upload/bp9601_grey.jpeg"><img src="/thumb/bp9601.jpeg"></a>
    <a href="https://cdn.example.com/bp9602_navy.jpeg"><img src="/thumb/bp9602.jpeg"></a>
  </div>
  <div id="hikashop_product_description_main">
    <table>
      <tr><td>Material :</td><td>600D Polyester</td></tr>
      <tr><td>Dimensions</td><td>30 x 45 x 15 cm</td></tr>
      <tr><td>Materials</td><td>Ignored duplicate</td></tr>
      <tr><td>Printing Method:</td><td>Silkscreen, Heat Transfer / Silkscreen</td></tr>
      <tr><td>Colour</td><td>Grey</td></tr>
    </table>
  </div>
</div>
</body></html>
"""


def test_search_prefix_trims_and_uppercases():
    """Test search prefix."""
    assert search_prefix("  bp96 ") == "BP96"


def test_parse_quantity():
    """Test quantity parsing."""
    assert parse_quantity("1,234") == 1234
    assert parse_quantity(" 15 ") == 15
    assert parse_quantity("n/a") == 0
    assert parse_quantity("") == 0
    assert parse_quantity(None) == 0
    assert parse_quantity("-5") == 0


def test_parse_price():
    """Test price parsing."""
    assert parse_price("$12.50 SGD") == Decimal("12.50")
    assert parse_price("19.9") == Decimal("19.9")
    assert parse_price("call us") == Decimal("0")
    assert parse_price("1.2.3") == Decimal("0")


def test_parse_stock_rows_keeps_only_prefixed_rows():
    """Test rows outside the prefix are dropped."""
    cell_rows = [
        ["BP9601", "GREY waterproof Backpack", "1,234", "$12.50"],
        ["bp9602", "NAVY waterproof Backpack", "0", "12.50"],
        ["OTHER", "Something else", "5", "1.00"],
        [],
    ]

    rows = parse_stock_rows(cell_rows, "BP96")

    assert [row.variant_code for row in rows] == ["BP9601", "bp9602"]
    assert rows[0].quantity == 1234
    assert rows[0].unit_price == Decimal("12.50")
    assert rows[1].description == "NAVY waterproof Backpack"


def test_parse_stock_rows_tolerates_short_rows():
    """Test rows with missing cells."""
    rows = parse_stock_rows([["BP9601"]], "BP96")

    assert len(rows) == 1
    assert rows[0].description == ""
    assert rows[0].quantity == 0
    assert rows[0].unit_price == Decimal("0")


def test_make_absolute():
    """Test URL resolution."""
    assert make_absolute("/images/a.jpg", ORIGIN) == f"{ORIGIN}/images/a.jpg"
    assert make_absolute("https://cdn.example.com/a.jpg", ORIGIN) == "https://cdn.example.com/a.jpg"
    assert make_absolute("", ORIGIN) is None
    assert make_absolute("javascript:void(0)", ORIGIN) is None


def test_normalize_label():
    """Test spec label normalization."""
    assert normalize_label("Printing Method:") == "printingmethod"
    assert normalize_label(" Size (cm) ") == "sizecm"


def test_parse_listing_and_match():
    html = f"""
    <div class="hikashop_products_listing">
      <div class="hikashop_product">
        <span class="hikashop_product_name"><a href="/product/1-bp95">BP95 Tote</a></span>
        <img src="/images/bp95.jpg">
      </div>
      <div class="hikashop_product">
        <span class="hikashop_product_name"><a href="/product/2-bp96">Summit BP96 Backpack</a></span>
        <img src="{ORIGIN}/images/bp96.jpg">
      </div>
      <div class="hikashop_product"><span>No link here</span></div>
    </div>
    """

    results = parse_listing(html, ORIGIN)

    assert len(results) == 2
    assert results[0].link == f"{ORIGIN}/product/1-bp95"
    assert results[0].image == f"{ORIGIN}/images/bp95.jpg"

    match = select_listing_match(results, " bp96 ")
    assert match.title == "Summit BP96 Backpack"


def test_select_listing_match_falls_back_to_first():
    """Test listing match selection."""
    results = [ListingResult(title="Something", link="https://x/1"), ListingResult(title=None, link="https://x/2")]

    assert select_listing_match(results, "BP96").link == "https://x/1"
    assert select_listing_match([], "BP96") is None


def test_extract_specs_first_value_wins():
    """Test spec extraction from description tables."""
    specs = extract_specs(LexborHTMLParser(PRODUCT_PAGE))

    assert specs["material"] == "600D Polyester"
    assert specs["dimension"] == "30 x 45 x 15 cm"
    assert specs["printing_methods"] == "Silkscreen, Heat Transfer / Silkscreen"
    assert "colour" not in specs


def test_extract_specs_falls_back_to_page_rows():
    html = """
    <div class="hikashop_product_page">
      <table><tr><th>Weight</th><td>450 g</td></tr></table>
    </div>
    """

    assert extract_specs(LexborHTMLParser(html)) == {"weight": "450 g"}


def test_split_printing_methods_dedupes_in_order():
    """Test printing method splitting."""
    assert split_printing_methods("Silkscreen, Heat Transfer / Silkscreen") == ["Silkscreen", "Heat Transfer"]
    assert split_printing_methods(None) == []


def test_extract_images_prefers_anchor_links():
    """Test full-size image links."""
    images = extract_images(LexborHTMLParser(PRODUCT_PAGE), ORIGIN)

    assert images == [
        f"{ORIGIN}/images/com_hikashop/upload/bp9601_grey.jpeg",
        "https://cdn.example.com/bp9602_navy.jpeg",
    ]


def test_extract_images_falls_back_to_img_tags():
    """Test image fallback to img sources."""
    html = '<div id="hikashop_product_image_main"><img src="/thumb/a.jpg"></div>'

    assert extract_images(LexborHTMLParser(html), ORIGIN) == [f"{ORIGIN}/thumb/a.jpg"]


def test_extract_display_name_skips_placeholder_and_variant_suffix():
    """Test display name extraction."""
    assert extract_display_name(LexborHTMLParser(PRODUCT_PAGE)) == "Summit Backpack"
    assert extract_display_name(LexborHTMLParser("<h1>Plain Mug</h1>")) == "Plain Mug"
    assert extract_display_name(LexborHTMLParser("<p>nothing</p>")) is None


def test_extract_product_detail():
    """Test full product page extraction."""
    detail = extract_product_detail(PRODUCT_PAGE, code="BP96", origin=ORIGIN, url=f"{ORIGIN}/product/2-bp96")

    assert detail.code == "BP96"
    assert detail.display_name == "Summit Backpack"
    assert detail.material == "600D Polyester"
    assert detail.printing_methods == ["Silkscreen", "Heat Transfer"]
    assert len(detail.images) == 2
    assert not detail.is_empty


def test_extract_product_detail_uses_listing_image_when_page_has_none():
    """Test listing thumbnail fallback."""
    detail = extract_product_detail(
        "<html><body></body></html>",
        code="BP96",
        origin=ORIGIN,
        listing_image=f"{ORIGIN}/images/bp96.jpg",
    )

    assert detail.images == [f"{ORIGIN}/images/bp96.jpg"]
    assert not detail.has_specs
