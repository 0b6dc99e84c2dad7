"""Core data types shared by the scrapers, the cache and the reconciler."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


def normalize_code(code: str) -> str:
    """
    Normalize a product code for use as a cache/lookup key.

    Codes are case- and whitespace-insensitive: " Bp96 " and "BP96" are
    the same product.
    """
    return (code or "").strip().lower()


class CacheModel(BaseModel):
    """Base for everything persisted in the cache file (camelCase on disk)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class StockRow(CacheModel):
    """One variant row from the stock site."""

    variant_code: str
    description: str = ""
    quantity: int = Field(default=0, ge=0)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)

    @field_serializer("unit_price", when_used="json")
    def _price_as_number(self, value: Decimal) -> float:
        return float(value)


class ProductDetail(CacheModel):
    """Specification detail and images scraped from the detail site."""

    code: str
    url: Optional[str] = None
    display_name: Optional[str] = None
    material: Optional[str] = None
    dimension: Optional[str] = None
    weight: Optional[str] = None
    finish: Optional[str] = None
    function: Optional[str] = None
    printing_methods: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)

    @property
    def has_specs(self) -> bool:
        return any(
            (self.material, self.dimension, self.weight, self.finish, self.function, self.printing_methods)
        )

    @property
    def is_empty(self) -> bool:
        """True for the explicit "found, no detail" record."""
        return not (self.display_name or self.images or self.has_specs)


class MarketingCopy(CacheModel):
    """Generated (or fallback) marketing copy for one product."""

    seo_title: str
    product_title: str
    short_description: str
    long_description: str
    meta_description: str

    @property
    def is_complete(self) -> bool:
        return all(
            value and value.strip()
            for value in (
                self.seo_title,
                self.product_title,
                self.short_description,
                self.long_description,
                self.meta_description,
            )
        )


class CachedRecord(CacheModel):
    """
    Accumulated per-source data for one normalized product code.

    A sub-record of None means the source has not been fetched yet; an
    empty stock_rows list means it was fetched and found nothing.
    """

    code: str
    stock_rows: Optional[List[StockRow]] = None
    detail: Optional[ProductDetail] = None
    marketing_copy: Optional[MarketingCopy] = None


class CacheSnapshot(CacheModel):
    """The whole cache document: normalized code -> record."""

    products: Dict[str, CachedRecord] = Field(default_factory=dict)


@dataclass
class ProductListing:
    """One row of the input product list."""

    code: str
    parent_cat: Optional[str] = None
    sub_cat: Optional[str] = None
    image_url: Optional[str] = None


@dataclass
class StockResult:
    """Stock-side input of the reconciler for one product code."""

    code: str
    rows: List[StockRow] = field(default_factory=list)
    image_url: Optional[str] = None
    images: List[str] = field(default_factory=list)
    parent_cat: Optional[str] = None
    sub_cat: Optional[str] = None
