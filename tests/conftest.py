# tests/conftest.py
from collections.abc import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

import pharma_catalog.api.dependencies as _deps
from pharma_catalog.core.config import Settings, get_settings
from pharma_catalog.main import app
from pharma_catalog.repositories.sqlite_product_repository import SQLiteProductRepository


@pytest.fixture
def test_settings() -> Settings:
    return Settings(database_url="sqlite+aiosqlite:///:memory:")


@pytest.fixture
def client(test_settings: Settings) -> Generator[TestClient, None, None]:
    # Reset the repository singleton so each test starts with an empty
    # in-memory SQLite database.
    _deps._repository = None
    app.dependency_overrides[get_settings] = lambda: test_settings
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_settings, None)
        _deps._repository = None


@pytest_asyncio.fixture  # type: ignore[misc]
async def repository() -> AsyncGenerator[SQLiteProductRepository, None]:
    repo = SQLiteProductRepository("sqlite+aiosqlite:///:memory:")
    await repo.initialize()
    yield repo
    await repo.close()


@pytest.fixture
def paracetamol() -> dict:
    return {
        "id": "P1",
        "name": "Paracetamol",
        "atcCode": "N02BE01",
        "prescriptionRequired": False,
        "keywords": ["analgésico", "fiebre"],
        "variants": [
            {
                "barcode": "111",
                "pharmaceuticalForm": "tablet",
                "doseStrength": "500 mg",
                "unitsPerPackage": 20,
            }
        ],
    }
