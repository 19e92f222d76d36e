from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class ProductORM(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    # Filter columns are denormalized copies of fields inside `data`.
    atc_code: Mapped[str | None] = mapped_column(String(16), index=True, nullable=True)
    prescription_required: Mapped[bool | None] = mapped_column(
        Boolean, index=True, nullable=True
    )
    enabled: Mapped[bool] = mapped_column(Boolean, index=True, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # The full Product document as JSON, the source of truth when reading.
    data: Mapped[str] = mapped_column(Text, nullable=False)


class ProductBarcodeORM(Base):
    """Sparse unique index over variants[*].barcode: one row per non-empty barcode."""

    __tablename__ = "product_barcodes"

    barcode: Mapped[str] = mapped_column(String(64), primary_key=True)
    product_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False
    )


class ProductTermORM(Base):
    """Inverted text index over name + keywords."""

    __tablename__ = "product_terms"

    product_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("products.id", ondelete="CASCADE"), primary_key=True
    )
    term: Mapped[str] = mapped_column(String(128), primary_key=True)

    __table_args__ = (Index("ix_product_terms_term", "term"),)
