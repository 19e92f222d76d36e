# src/pharma_catalog/api/dependencies.py
from fastapi import Depends

from pharma_catalog.core.config import Settings, get_settings
from pharma_catalog.repositories.base import AbstractProductRepository
from pharma_catalog.repositories.sqlite_product_repository import SQLiteProductRepository

# Singleton Repository (Initialisiert beim ersten Zugriff, geschlossen im Lifespan)
_repository: AbstractProductRepository | None = None


async def get_product_repository(
    settings: Settings = Depends(get_settings),
) -> AbstractProductRepository:
    global _repository
    if _repository is None:
        repo = SQLiteProductRepository(database_url=settings.database_url, echo=settings.debug)
        try:
            await repo.initialize()
        except Exception:
            # Nicht cachen: der nächste Request versucht es erneut
            await repo.close()
            raise
        _repository = repo
    return _repository


async def close_product_repository() -> None:
    global _repository
    if _repository is not None:
        await _repository.close()
        _repository = None
