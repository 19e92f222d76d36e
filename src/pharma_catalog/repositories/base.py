from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pharma_catalog.domain.models import (
        Product,
        ProductCreate,
        ProductPatch,
        ProductReplace,
        ProductSearchFilter,
    )


class AbstractProductRepository(ABC):
    @abstractmethod
    async def initialize(self) -> None:
        """Opens the store and declares tables and indexes (idempotent)."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Releases all connections held by the store."""
        ...

    @abstractmethod
    async def ping(self) -> None:
        """Raises if the store is not reachable."""
        ...

    @abstractmethod
    async def create(self, payload: ProductCreate) -> Product:
        """Creates a new product. Raises ProductConflictError on duplicate id or barcode."""
        ...

    @abstractmethod
    async def get_by_id(self, product_id: str) -> Product:
        """Returns the product or raises ProductNotFoundError."""
        ...

    @abstractmethod
    async def find_by_barcode(self, barcode: str) -> Product:
        """Returns the one product owning the barcode or raises ProductNotFoundError."""
        ...

    @abstractmethod
    async def replace(self, product_id: str, payload: ProductReplace) -> Product:
        """Upserts the product by id, preserving created_at of an existing record."""
        ...

    @abstractmethod
    async def partial_update(self, product_id: str, patch: ProductPatch) -> Product:
        """Merges the sent fields into an existing product."""
        ...

    @abstractmethod
    async def delete(self, product_id: str) -> None:
        """Deletes the product or raises ProductNotFoundError."""
        ...

    @abstractmethod
    async def search(
        self, search: ProductSearchFilter, limit: int = 50, offset: int = 0
    ) -> list[Product]:
        """Finds products matching all set filter fields, ordered by id."""
        ...
