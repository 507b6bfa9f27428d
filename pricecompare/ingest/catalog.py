"""Find-or-create resolution of stores, brands, categories and products."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, TypeVar

from sqlalchemy import Table, insert, select, update
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError, MultipleResultsFound
from sqlalchemy.sql import Select

from pricecompare.db.tables import brands, categories, products, stores
from pricecompare.errors import InconsistentDataError
from pricecompare.ingest.models import Brand, Category, Product, Store, lookup_key
from pricecompare.utils.dates import utcnow

logger = logging.getLogger(__name__)

NamedT = TypeVar("NamedT", Store, Brand, Category)


class CatalogResolver:
    """Catalog lookups bound to the connection of the current transaction."""

    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    def resolve_store(self, name: str) -> Store:
        return self._resolve_named(stores, Store, name, "store")

    def resolve_brand(self, name: str) -> Brand:
        return self._resolve_named(brands, Brand, name, "brand")

    def resolve_category(self, name: str) -> Category:
        return self._resolve_named(categories, Category, name, "category")

    def find_brand(self, name: str) -> Brand | None:
        row = self._fetch_one(select(brands).where(brands.c.lookup_key == lookup_key(_require_name(name, "brand"))))
        return _named(Brand, row) if row else None

    def get_store(self, store_id: int) -> Store | None:
        row = self._fetch_one(select(stores).where(stores.c.id == store_id))
        return _named(Store, row) if row else None

    def get_product(self, product_id: int) -> Product | None:
        row = self._fetch_one(select(products).where(products.c.id == product_id))
        return _product(row) if row else None

    def find_product(self, name: str, brand: Brand) -> Product | None:
        key = lookup_key(_require_name(name, "product"))
        row = self._fetch_one(
            select(products).where(products.c.lookup_key == key, products.c.brand_id == brand.id)
        )
        return _product(row) if row else None

    def resolve_product(self, name: str, brand: Brand, category: Category) -> Product:
        """Find or create a product; a differing category overwrites the stored one."""
        display = _require_name(name, "product")
        product = self.find_product(display, brand)
        if product is None:
            return self._create(
                products,
                {"name": display, "lookup_key": lookup_key(display), "brand_id": brand.id, "category_id": category.id},
                lambda: self.find_product(display, brand),
                f"product {display!r} ({brand.name})",
            )
        if product.category_id != category.id:
            logger.warning(
                "Product %r (id=%s) stored with category id %s but source says %r (id=%s); updating category",
                product.name,
                product.id,
                product.category_id,
                category.name,
                category.id,
            )
            now = utcnow()
            self.conn.execute(
                update(products)
                .where(products.c.id == product.id)
                .values(category_id=category.id, updated_at=now)
            )
            product.category_id = category.id
            product.updated_at = now
        return product

    def _resolve_named(self, table: Table, model: type[NamedT], name: str, label: str) -> NamedT:
        display = _require_name(name, label)
        key = lookup_key(display)

        def find() -> NamedT | None:
            row = self._fetch_one(select(table).where(table.c.lookup_key == key))
            return _named(model, row) if row else None

        existing = find()
        if existing is not None:
            return existing
        return self._create(table, {"name": display, "lookup_key": key}, find, f"{label} {display!r}")

    def _create(self, table: Table, values: dict[str, Any], find_again: Callable[[], Any], label: str):
        now = utcnow()
        try:
            with self.conn.begin_nested():
                self.conn.execute(insert(table).values(**values, created_at=now, updated_at=now))
        except IntegrityError:
            # Another writer inserted the same natural key first.
            logger.info("Concurrent insert detected for %s; re-reading", label)
            existing = find_again()
            if existing is None:
                raise InconsistentDataError(f"Insert of {label} conflicted but no row was found") from None
            return existing
        created = find_again()
        if created is None:
            raise InconsistentDataError(f"Inserted {label} could not be read back")
        logger.info("Created %s (id=%s)", label, created.id)
        return created

    def _fetch_one(self, stmt: Select) -> Mapping[str, Any] | None:
        try:
            return self.conn.execute(stmt).mappings().one_or_none()
        except MultipleResultsFound as exc:
            raise InconsistentDataError(f"Natural key matched several rows: {stmt}") from exc


def _require_name(name: str | None, label: str) -> str:
    if name is None or not name.strip():
        raise ValueError(f"{label.capitalize()} name must not be blank")
    return name.strip()


def _named(model: type[NamedT], row: Mapping[str, Any]) -> NamedT:
    return model(id=row["id"], name=row["name"], created_at=row["created_at"], updated_at=row["updated_at"])


def _product(row: Mapping[str, Any]) -> Product:
    return Product(
        id=row["id"],
        name=row["name"],
        brand_id=row["brand_id"],
        category_id=row["category_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
