"""Value-for-money analysis: prices normalised to a standard unit."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.engine import Connection

from pricecompare.db.tables import brands, categories, products, stores
from pricecompare.errors import InvalidInputError, NotFoundError
from pricecompare.ingest.models import PriceEntry, lookup_key
from pricecompare.ingest.units import BaseUnit, UnitOfMeasure
from pricecompare.logic.pricing import latest_price, latest_prices_per_store, quantize_money

# unit -> (standard unit, how many of the unit make one standard unit)
CONVERSIONS: dict[UnitOfMeasure, tuple[BaseUnit, Decimal]] = {
    UnitOfMeasure.KG: (BaseUnit.KG, Decimal(1)),
    UnitOfMeasure.G: (BaseUnit.KG, Decimal(1000)),
    UnitOfMeasure.L: (BaseUnit.L, Decimal(1)),
    UnitOfMeasure.ML: (BaseUnit.L, Decimal(1000)),
}

SORT_KEYS = ("price_per_unit", "price", "name")


@dataclass(slots=True)
class ProductValue:
    product_id: int
    product_name: str
    brand_name: str
    category_name: str
    store_id: int | None = None
    store_name: str | None = None
    price: Decimal | None = None
    currency: str | None = None
    price_date: date | None = None
    package_quantity: Decimal | None = None
    package_unit: str | None = None
    price_per_unit: Decimal | None = None
    standard_unit: str | None = None

    @property
    def normalizable(self) -> bool:
        return self.price_per_unit is not None


def standard_unit_for(unit: UnitOfMeasure) -> BaseUnit | None:
    conversion = CONVERSIONS.get(unit)
    return conversion[0] if conversion else None


def price_per_standard_unit(price: Decimal, quantity: Decimal, unit: UnitOfMeasure) -> Decimal | None:
    """Price per KG or per L; ``None`` for counted units or a zero quantity."""
    conversion = CONVERSIONS.get(unit)
    if conversion is None or not quantity:
        return None
    _, per_standard = conversion
    return quantize_money(price * per_standard / quantity)


def products_with_value(
    conn: Connection,
    as_of: date,
    name: str | None = None,
    category_id: int | None = None,
    brand_id: int | None = None,
    store_id: int | None = None,
    sort: str | None = None,
) -> list[ProductValue]:
    sort_key = _sort_key(sort)
    store_names = {row.id: row.name for row in conn.execute(select(stores.c.id, stores.c.name))}
    if store_id is not None and store_id not in store_names:
        raise NotFoundError(f"Store {store_id} not found")

    stmt = (
        select(products.c.id, products.c.name, brands.c.name.label("brand_name"), categories.c.name.label("category_name"))
        .join(brands, brands.c.id == products.c.brand_id)
        .join(categories, categories.c.id == products.c.category_id)
        .order_by(products.c.lookup_key, products.c.id)
    )
    if name and name.strip():
        stmt = stmt.where(products.c.lookup_key.contains(lookup_key(name), autoescape=True))
    if category_id is not None:
        stmt = stmt.where(products.c.category_id == category_id)
    if brand_id is not None:
        stmt = stmt.where(products.c.brand_id == brand_id)

    results: list[ProductValue] = []
    for row in conn.execute(stmt).all():
        if store_id is not None:
            entry = latest_price(conn, row.id, as_of, store_id=store_id)
            entries = [entry] if entry else []
        else:
            entries = latest_prices_per_store(conn, row.id, as_of)
        if not entries:
            results.append(ProductValue(row.id, row.name, row.brand_name, row.category_name))
            continue
        for entry in entries:
            results.append(_value(row, entry, store_names[entry.store_id]))

    if sort_key is None:
        return results
    field_name, descending = sort_key
    return _sorted(results, _SORT_ACCESSORS[field_name], descending)


def _value(row: Any, entry: PriceEntry, store_name: str) -> ProductValue:
    standard = standard_unit_for(entry.package_unit)
    return ProductValue(
        product_id=row.id,
        product_name=row.name,
        brand_name=row.brand_name,
        category_name=row.category_name,
        store_id=entry.store_id,
        store_name=store_name,
        price=entry.price,
        currency=entry.currency,
        price_date=entry.entry_date,
        package_quantity=entry.package_quantity,
        package_unit=entry.package_unit.value,
        price_per_unit=price_per_standard_unit(entry.price, entry.package_quantity, entry.package_unit),
        standard_unit=standard.value if standard else None,
    )


_SORT_ACCESSORS: dict[str, Callable[[ProductValue], Any]] = {
    "price_per_unit": lambda value: value.price_per_unit,
    "price": lambda value: value.price,
    "name": lambda value: value.product_name.casefold(),
}


def _sort_key(sort: str | None) -> tuple[str, bool] | None:
    if not sort:
        return None
    descending = sort.startswith("-")
    field_name = sort.lstrip("-")
    if field_name not in SORT_KEYS:
        raise InvalidInputError(f"Unknown sort key {sort!r}; expected one of {', '.join(SORT_KEYS)}")
    return field_name, descending


def _sorted(values: list[ProductValue], accessor: Callable[[ProductValue], Any], descending: bool) -> list[ProductValue]:
    present = [value for value in values if accessor(value) is not None]
    missing = [value for value in values if accessor(value) is None]
    present.sort(key=accessor, reverse=descending)
    return present + missing
