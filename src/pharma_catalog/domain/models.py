# src/pharma_catalog/domain/models.py
from __future__ import annotations

from datetime import UTC, datetime
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CatalogModel(BaseModel):
    """Basis aller Katalog-Schemas: snake_case in Python, camelCase im JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------


class Variant(CatalogModel):
    """Verpackungs-/Darreichungsvariante eines Produkts, identifiziert über den Barcode."""

    barcode: str = Field(min_length=1, max_length=64)
    pharmaceutical_form: str | None = None
    dose_strength: str | None = None
    units_per_package: int | None = Field(default=None, ge=0)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    @field_validator("barcode")
    @classmethod
    def strip_barcode(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("barcode must not be blank")
        return value


# ---------------------------------------------------------------------------
# Aggregate: Product
# ---------------------------------------------------------------------------


class ProductFields(CatalogModel):
    """Veränderbare Felder eines Produkts (alles außer id und Zeitstempeln)."""

    name: str = Field(min_length=1, max_length=512)
    atc_code: str | None = Field(default=None, max_length=16)
    # Tri-State: None = unbekannt
    prescription_required: bool | None = None
    enabled: bool = True
    keywords: list[str] = Field(default_factory=list)
    variants: list[Variant] = Field(default_factory=list)


class Product(ProductFields):
    """
    Gespeichertes Produkt. Die id ist der vom Client vergebene kanonische Schlüssel.
    Zeitstempel werden ausschließlich vom Repository gesetzt.
    """

    id: str = Field(min_length=1, max_length=128)
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def updated_not_before_created(self) -> Self:
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not be earlier than created_at")
        return self

    @property
    def barcodes(self) -> list[str]:
        return [v.barcode for v in self.variants if v.barcode]


# ---------------------------------------------------------------------------
# API Request Schemas
# ---------------------------------------------------------------------------


class ProductCreate(ProductFields):
    id: str = Field(min_length=1, max_length=128)


class ProductReplace(ProductFields):
    # Optional im Body; falls gesetzt, muss die id mit dem Pfad übereinstimmen.
    id: str | None = Field(default=None, min_length=1, max_length=128)


class ProductPatch(CatalogModel):
    """
    Teil-Update: nur explizit gesendete Felder werden übernommen.
    Listen (keywords, variants) werden komplett ersetzt, nicht elementweise gemergt.
    """

    name: str | None = Field(default=None, min_length=1, max_length=512)
    atc_code: str | None = Field(default=None, max_length=16)
    prescription_required: bool | None = None
    enabled: bool | None = None
    keywords: list[str] | None = None
    variants: list[Variant] | None = None

    @model_validator(mode="after")
    def required_fields_not_null(self) -> Self:
        for field in ("name", "enabled", "keywords", "variants"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} must not be null")
        return self

    def changes(self) -> dict[str, object]:
        return {field: getattr(self, field) for field in self.model_fields_set}


class ProductSearchFilter(CatalogModel):
    text: str | None = None
    atc_code: str | None = None
    prescription_required: bool | None = None
    enabled: bool | None = None


def utcnow() -> datetime:
    return datetime.now(UTC)
