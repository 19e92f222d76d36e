# src/pharma_catalog/domain/exceptions.py
from __future__ import annotations

# ---------------------------------------------------------------------------
# Custom Domain Exceptions
# ---------------------------------------------------------------------------


class ProductNotFoundError(Exception):
    def __init__(self, key: str, value: str):
        super().__init__(f"No product with {key} '{value}'")
        self.key = key
        self.value = value


class ProductConflictError(Exception):
    """Ein Schreibvorgang würde einen eindeutigen Schlüssel (id oder Barcode) duplizieren."""

    def __init__(self, key: str, value: str):
        super().__init__(f"Duplicate {key} '{value}'")
        self.key = key
        self.value = value

    @property
    def dup_key(self) -> dict[str, str]:
        return {self.key: self.value}


class ProductValidationError(Exception):
    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail
