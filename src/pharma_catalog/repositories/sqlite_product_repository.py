from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import CursorResult, delete, event, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from pharma_catalog.core.metrics import PRODUCT_WRITE_CONFLICTS
from pharma_catalog.domain.exceptions import (
    ProductConflictError,
    ProductNotFoundError,
    ProductValidationError,
)
from pharma_catalog.domain.models import (
    Product,
    ProductCreate,
    ProductPatch,
    ProductReplace,
    ProductSearchFilter,
    utcnow,
)
from pharma_catalog.repositories.base import AbstractProductRepository
from pharma_catalog.repositories.indexes import IndexManager, duplicate_barcodes
from pharma_catalog.repositories.query_builder import build_search_query
from pharma_catalog.repositories.schema import ProductBarcodeORM, ProductORM

logger = logging.getLogger(__name__)

# Execution option marking connections that will write.
WRITE_LOCK_OPTION = "sqlite_immediate"


def _configure_sqlite(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
        # SQLAlchemy emits BEGIN itself (see below), not the driver.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        # WAL: Leser sehen den letzten Commit, während ein Writer offen ist.
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def begin(conn: Any) -> None:
        # Writers take the write lock up front and queue on the busy timeout
        # instead of failing on a read->write lock upgrade. Readers never do.
        if conn.get_execution_options().get(WRITE_LOCK_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def _row_values(product: Product) -> dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "atc_code": product.atc_code,
        "prescription_required": product.prescription_required,
        "enabled": product.enabled,
        "created_at": product.created_at,
        "updated_at": product.updated_at,
        "data": product.model_dump_json(),
    }


def _from_row(row: ProductORM) -> Product:
    return Product.model_validate_json(row.data)


class SQLiteProductRepository(AbstractProductRepository):
    """
    Product repository on top of SQLAlchemy asyncio.

    Every operation runs in one transaction touching one product document and
    its index entries. Uniqueness of ids and barcodes is enforced by the
    database constraints; an IntegrityError is translated into
    ProductConflictError after the transaction has been rolled back.
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        self.engine = create_async_engine(database_url, echo=echo)
        if self.engine.dialect.name == "sqlite":
            _configure_sqlite(self.engine)
        self.async_session_maker = async_sessionmaker(self.engine, expire_on_commit=False)
        self._indexes = IndexManager()

    async def initialize(self) -> None:
        await self._indexes.ensure(self.engine)

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("Product store closed")

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def write_session(self) -> AsyncIterator[AsyncSession]:
        """Session in a transaction that holds the store's write lock until commit."""
        async with self.async_session_maker() as session, session.begin():
            await session.connection(execution_options={WRITE_LOCK_OPTION: True})
            yield session

    async def create(self, payload: ProductCreate) -> Product:
        now = utcnow()
        product = Product(**payload.model_dump(), created_at=now, updated_at=now)
        try:
            async with self.write_session() as session:
                await self._put(session, product, existing=None)
        except IntegrityError as e:
            raise await self._diagnose_conflict(product) from e
        logger.debug("Created product %s", product.id)
        return product

    async def replace(self, product_id: str, payload: ProductReplace) -> Product:
        if payload.id is not None and payload.id != product_id:
            raise ProductValidationError(
                f"Body id '{payload.id}' does not match path id '{product_id}'"
            )
        now = utcnow()
        product = Product(
            **payload.model_dump(exclude={"id"}), id=product_id, created_at=now, updated_at=now
        )
        try:
            async with self.write_session() as session:
                row = await session.get(ProductORM, product_id, with_for_update=True)
                if row is not None:
                    created_at = _from_row(row).created_at
                    product = product.model_copy(
                        update={"created_at": created_at, "updated_at": max(now, created_at)}
                    )
                await self._put(session, product, existing=row)
        except IntegrityError as e:
            raise await self._diagnose_conflict(product) from e
        return product

    async def partial_update(self, product_id: str, patch: ProductPatch) -> Product:
        product: Product | None = None
        try:
            async with self.write_session() as session:
                row = await session.get(ProductORM, product_id, with_for_update=True)
                if row is None:
                    raise ProductNotFoundError("id", product_id)
                current = _from_row(row)
                product = Product(
                    **{
                        **current.model_dump(),
                        **patch.changes(),
                        "updated_at": max(utcnow(), current.created_at),
                    }
                )
                await self._put(session, product, existing=row)
        except IntegrityError as e:
            if product is None:
                raise
            raise await self._diagnose_conflict(product) from e
        return product

    async def delete(self, product_id: str) -> None:
        async with self.write_session() as session:
            await self._indexes.drop_entries(session, product_id)
            result = await session.execute(delete(ProductORM).where(ProductORM.id == product_id))
            if not (isinstance(result, CursorResult) and result.rowcount > 0):
                raise ProductNotFoundError("id", product_id)
        logger.debug("Deleted product %s", product_id)

    async def _put(
        self, session: AsyncSession, product: Product, existing: ProductORM | None
    ) -> None:
        values = _row_values(product)
        if existing is None:
            session.add(ProductORM(**values))
        else:
            for key, value in values.items():
                setattr(existing, key, value)
        # Document row first: index rows reference it.
        await session.flush()
        await self._indexes.write_entries(session, product)

    async def _diagnose_conflict(self, product: Product) -> ProductConflictError:
        """Works out which unique key a failed write collided with."""
        dupes = duplicate_barcodes(product)
        if dupes:
            return self._conflict("variants.barcode", dupes[0])
        async with self.async_session_maker() as session:
            owner = await self._indexes.find_barcode_owner(
                session, product.barcodes, exclude_product_id=product.id
            )
        if owner is not None:
            return self._conflict("variants.barcode", owner[0])
        return self._conflict("id", product.id)

    @staticmethod
    def _conflict(key: str, value: str) -> ProductConflictError:
        logger.warning("Rejected write: duplicate %s '%s'", key, value)
        PRODUCT_WRITE_CONFLICTS.labels(key=key).inc()
        return ProductConflictError(key, value)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_by_id(self, product_id: str) -> Product:
        async with self.async_session_maker() as session:
            row = await session.get(ProductORM, product_id)
            if row is None:
                raise ProductNotFoundError("id", product_id)
            return _from_row(row)

    async def find_by_barcode(self, barcode: str) -> Product:
        barcode = barcode.strip()
        if not barcode:
            raise ProductNotFoundError("barcode", barcode)
        async with self.async_session_maker() as session:
            result = await session.execute(
                select(ProductORM)
                .join(ProductBarcodeORM, ProductBarcodeORM.product_id == ProductORM.id)
                .where(ProductBarcodeORM.barcode == barcode)
            )
            row = result.scalar_one_or_none()
            if row is None:
                raise ProductNotFoundError("barcode", barcode)
            return _from_row(row)

    async def search(
        self, search: ProductSearchFilter, limit: int = 50, offset: int = 0
    ) -> list[Product]:
        async with self.async_session_maker() as session:
            result = await session.execute(build_search_query(search, limit=limit, offset=offset))
            return [_from_row(row) for row in result.scalars()]
