from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from pharma_catalog.api.dependencies import get_product_repository
from pharma_catalog.core.config import Settings, get_settings
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
)
from pharma_catalog.repositories.base import AbstractProductRepository

router = APIRouter(prefix="/products", tags=["Products"])

RepositoryDep = Annotated[AbstractProductRepository, Depends(get_product_repository)]
SettingsDep = Annotated[Settings, Depends(get_settings)]


def _not_found(e: ProductNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _conflict(e: ProductConflictError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"message": "Duplicate key", "dupKey": e.dup_key},
    )


@router.get("", response_model=list[Product])
async def search_products(
    repository: RepositoryDep,
    settings: SettingsDep,
    text: str | None = None,
    atc: str | None = None,
    rx: bool | None = None,
    enabled: bool | None = None,
    limit: int | None = Query(None, ge=0),
    skip: int = Query(0, ge=0),
) -> list[Product]:
    """
    Sucht Produkte. Jeder gesetzte Parameter schränkt das Ergebnis weiter ein (AND).
    """
    search = ProductSearchFilter(
        text=text, atc_code=atc, prescription_required=rx, enabled=enabled
    )
    return await repository.search(
        search,
        limit=settings.default_search_limit if limit is None else limit,
        offset=skip,
    )


@router.post("", response_model=Product, status_code=status.HTTP_201_CREATED)
async def create_product(payload: ProductCreate, repository: RepositoryDep) -> Product:
    try:
        return await repository.create(payload)
    except ProductConflictError as e:
        raise _conflict(e)


@router.get("/barcodes/{barcode}", response_model=Product)
async def get_product_by_barcode(barcode: str, repository: RepositoryDep) -> Product:
    """
    Liefert das eine Produkt, zu dessen Varianten der Barcode gehört.
    """
    try:
        return await repository.find_by_barcode(barcode)
    except ProductNotFoundError as e:
        raise _not_found(e)


@router.get("/{product_id}", response_model=Product)
async def get_product(product_id: str, repository: RepositoryDep) -> Product:
    try:
        return await repository.get_by_id(product_id)
    except ProductNotFoundError as e:
        raise _not_found(e)


@router.put("/{product_id}", response_model=Product)
async def replace_product(
    product_id: str, payload: ProductReplace, repository: RepositoryDep
) -> Product:
    """Upsert: ersetzt das Produkt vollständig oder legt es an."""
    try:
        return await repository.replace(product_id, payload)
    except ProductValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.detail)
    except ProductConflictError as e:
        raise _conflict(e)


@router.patch("/{product_id}", response_model=Product)
async def update_product(
    product_id: str, payload: ProductPatch, repository: RepositoryDep
) -> Product:
    try:
        return await repository.partial_update(product_id, payload)
    except ProductNotFoundError as e:
        raise _not_found(e)
    except ProductConflictError as e:
        raise _conflict(e)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(product_id: str, repository: RepositoryDep) -> None:
    try:
        await repository.delete(product_id)
    except ProductNotFoundError as e:
        raise _not_found(e)
