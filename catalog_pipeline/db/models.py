"""SQLAlchemy models for the storefront tables the sync job updates.

The tables belong to the storefront application; only the columns read
or written here are mapped.
"""

from typing import Optional

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Product(Base):
    """Storefront product, matched by its SKU (the supplier product code)."""

    __tablename__ = "Product"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sku: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    stock_description: Mapped[Optional[str]] = mapped_column("stockDescription", Text, nullable=True)


class ProductColorOption(Base):
    """Colour option of a product, matched by its SKU (the variant code)."""

    __tablename__ = "ProductColorOption"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sku: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
