from datetime import UTC, datetime

import pytest
from sqlalchemy import inspect

from pharma_catalog.domain.models import Product, Variant
from pharma_catalog.repositories.indexes import duplicate_barcodes, text_terms, tokenize
from pharma_catalog.repositories.sqlite_product_repository import SQLiteProductRepository


def _product(
    name: str, keywords: list[str] | None = None, barcodes: tuple[str, ...] = ()
) -> Product:
    now = datetime.now(UTC)
    return Product(
        id="P1",
        name=name,
        keywords=keywords or [],
        variants=[Variant(barcode=b) for b in barcodes],
        created_at=now,
        updated_at=now,
    )


def test_tokenize_folds_case_and_diacritics():
    assert tokenize("Ácido Acetilsalicílico 500mg") == ["acido", "acetilsalicilico", "500mg"]


def test_tokenize_ignores_punctuation():
    assert tokenize("anti-inflamatorio, (oral)") == ["anti", "inflamatorio", "oral"]
    assert tokenize("  --  ") == []


def test_text_terms_cover_name_and_keywords():
    product = _product("Paracetamol Forte", keywords=["Fiebre", "dolor de cabeza"])
    assert text_terms(product) == {"paracetamol", "forte", "fiebre", "dolor", "de", "cabeza"}


def test_duplicate_barcodes():
    assert duplicate_barcodes(_product("X", barcodes=("111", "222"))) == []
    assert duplicate_barcodes(_product("X", barcodes=("111", "222", "111"))) == ["111"]


@pytest.mark.asyncio  # type: ignore[misc]
async def test_initialize_declares_indexes(repository: SQLiteProductRepository) -> None:
    def describe(sync_conn):  # type: ignore[no-untyped-def]
        inspector = inspect(sync_conn)
        return {
            "tables": set(inspector.get_table_names()),
            "product_indexes": {
                tuple(ix["column_names"]) for ix in inspector.get_indexes("products")
            },
            "term_indexes": {
                tuple(ix["column_names"]) for ix in inspector.get_indexes("product_terms")
            },
            "barcode_pk": inspector.get_pk_constraint("product_barcodes")["constrained_columns"],
        }

    async with repository.engine.connect() as conn:
        schema = await conn.run_sync(describe)

    assert schema["tables"] >= {"products", "product_barcodes", "product_terms"}
    assert {("atc_code",), ("prescription_required",), ("enabled",)} <= schema["product_indexes"]
    assert ("term",) in schema["term_indexes"]
    assert schema["barcode_pk"] == ["barcode"]


@pytest.mark.asyncio  # type: ignore[misc]
async def test_initialize_is_idempotent(repository: SQLiteProductRepository) -> None:
    await repository.initialize()
    await repository.ping()
