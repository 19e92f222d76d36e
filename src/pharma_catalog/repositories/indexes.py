from __future__ import annotations

import logging
import re
import unicodedata
from collections import Counter

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from pharma_catalog.domain.models import Product
from pharma_catalog.repositories.schema import Base, ProductBarcodeORM, ProductTermORM

logger = logging.getLogger(__name__)

_WORD = re.compile(r"\w+")
_MAX_TERM_LENGTH = 128


def tokenize(text: str) -> list[str]:
    """
    Zerlegt Freitext in Suchbegriffe: Unicode-Wortzeichen, kleingeschrieben,
    ohne diakritische Zeichen ("Ibuprofêno" -> "ibuprofeno").
    """
    decomposed = unicodedata.normalize("NFKD", text.casefold())
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return [token[:_MAX_TERM_LENGTH] for token in _WORD.findall(folded)]


def text_terms(product: Product) -> set[str]:
    terms = set(tokenize(product.name))
    for keyword in product.keywords:
        terms.update(tokenize(keyword))
    return terms


def duplicate_barcodes(product: Product) -> list[str]:
    return [barcode for barcode, count in Counter(product.barcodes).items() if count > 1]


class IndexManager:
    """
    Declares the catalog indexes and keeps the secondary index tables
    (barcodes, text terms) in step with the product documents.

    All writes happen on the caller's session so they commit or roll back
    together with the document itself.
    """

    async def ensure(self, engine: AsyncEngine) -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Catalog tables and indexes ensured on %s", engine.url.render_as_string())

    async def find_barcode_owner(
        self, session: AsyncSession, barcodes: list[str], exclude_product_id: str | None = None
    ) -> tuple[str, str] | None:
        """Returns (barcode, product_id) of the first barcode already owned by another product."""
        if not barcodes:
            return None
        stmt = select(ProductBarcodeORM.barcode, ProductBarcodeORM.product_id).where(
            ProductBarcodeORM.barcode.in_(barcodes)
        )
        if exclude_product_id is not None:
            stmt = stmt.where(ProductBarcodeORM.product_id != exclude_product_id)
        row = (await session.execute(stmt.order_by(ProductBarcodeORM.barcode).limit(1))).first()
        return (row.barcode, row.product_id) if row else None

    async def write_entries(self, session: AsyncSession, product: Product) -> None:
        # Replace, not merge: stale barcodes/terms of the previous version must go.
        await self.drop_entries(session, product.id)
        if product.barcodes:
            await session.execute(
                insert(ProductBarcodeORM),
                [{"barcode": b, "product_id": product.id} for b in product.barcodes],
            )
        terms = text_terms(product)
        if terms:
            await session.execute(
                insert(ProductTermORM),
                [{"product_id": product.id, "term": t} for t in sorted(terms)],
            )

    async def drop_entries(self, session: AsyncSession, product_id: str) -> None:
        await session.execute(
            delete(ProductBarcodeORM).where(ProductBarcodeORM.product_id == product_id)
        )
        await session.execute(delete(ProductTermORM).where(ProductTermORM.product_id == product_id))
