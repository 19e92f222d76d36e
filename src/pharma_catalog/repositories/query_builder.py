from __future__ import annotations

from sqlalchemy import Select, false, select

from pharma_catalog.domain.models import ProductSearchFilter
from pharma_catalog.repositories.indexes import tokenize
from pharma_catalog.repositories.schema import ProductORM, ProductTermORM


def parse_text_query(text: str) -> tuple[set[str], set[str]]:
    """
    Splits a free-text query into (included, excluded) terms.
    A word prefixed with '-' excludes products containing it.
    """
    included: set[str] = set()
    excluded: set[str] = set()
    for word in text.split():
        target = excluded if word.startswith("-") else included
        target.update(tokenize(word.lstrip("-")))
    return included, excluded - included


def _products_with_terms(terms: set[str]) -> Select[tuple[str]]:
    return select(ProductTermORM.product_id).where(ProductTermORM.term.in_(sorted(terms)))


def build_search_query(
    search: ProductSearchFilter, limit: int = 0, offset: int = 0
) -> Select[tuple[ProductORM]]:
    """
    Baut die Suchabfrage: jedes gesetzte Filterfeld schränkt per AND ein.
    Ohne Filter werden alle Produkte geliefert. limit=0 bedeutet kein Limit.
    """
    stmt = select(ProductORM)

    if search.text and search.text.strip():
        included, excluded = parse_text_query(search.text)
        if not included:
            # Only negated (or no usable) terms: nothing can match.
            stmt = stmt.where(false())
        else:
            stmt = stmt.where(ProductORM.id.in_(_products_with_terms(included)))
            if excluded:
                stmt = stmt.where(ProductORM.id.not_in(_products_with_terms(excluded)))

    if search.atc_code and search.atc_code.strip():
        stmt = stmt.where(ProductORM.atc_code == search.atc_code.strip())

    # None means "not requested"; False is a real filter value.
    if search.prescription_required is not None:
        stmt = stmt.where(ProductORM.prescription_required == search.prescription_required)

    if search.enabled is not None:
        stmt = stmt.where(ProductORM.enabled == search.enabled)

    # Stable order keeps offset-based paging deterministic.
    stmt = stmt.order_by(ProductORM.id)
    if offset:
        stmt = stmt.offset(offset)
    if limit:
        stmt = stmt.limit(limit)
    return stmt
