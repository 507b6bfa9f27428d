"""Price history for a product and daily unit-price trends for categories and brands."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

import pandas as pd
from sqlalchemy import Column, Table, select
from sqlalchemy.engine import Connection

from pricecompare.db.tables import brands, categories, price_entries, products, stores
from pricecompare.errors import InvalidInputError, NotFoundError
from pricecompare.ingest.units import BaseUnit, UnitOfMeasure
from pricecompare.logic.pricing import CENT, quantize_money
from pricecompare.logic.value import price_per_standard_unit, standard_unit_for
from pricecompare.utils.dates import today_in_tz

HISTORY_DAYS = 365
TREND_DAYS = 90


@dataclass(slots=True)
class PricePoint:
    entry_date: date
    store_id: int
    store_name: str
    price: Decimal
    currency: str
    package_quantity: Decimal
    package_unit: str


@dataclass(slots=True)
class TrendPoint:
    day: date
    average_price_per_unit: Decimal
    observations: int


def product_history(
    conn: Connection,
    product_id: int,
    store_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[PricePoint]:
    _require(conn, products, product_id, "Product")
    if store_id is not None:
        _require(conn, stores, store_id, "Store")
    start, end = _window(start, end, HISTORY_DAYS)
    stmt = (
        select(price_entries, stores.c.name.label("store_name"))
        .join(stores, stores.c.id == price_entries.c.store_id)
        .where(
            price_entries.c.product_id == product_id,
            price_entries.c.entry_date >= start,
            price_entries.c.entry_date <= end,
        )
        .order_by(price_entries.c.entry_date, price_entries.c.store_id)
    )
    if store_id is not None:
        stmt = stmt.where(price_entries.c.store_id == store_id)
    return [
        PricePoint(
            entry_date=row["entry_date"],
            store_id=row["store_id"],
            store_name=row["store_name"],
            price=Decimal(row["price"]),
            currency=row["currency"],
            package_quantity=Decimal(row["package_quantity"]),
            package_unit=row["package_unit"],
        )
        for row in conn.execute(stmt).mappings()
    ]


def category_trend(
    conn: Connection,
    category_id: int,
    base_unit: BaseUnit | str,
    store_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[TrendPoint]:
    _require(conn, categories, category_id, "Category")
    return _trend(conn, products.c.category_id, category_id, base_unit, store_id, start, end)


def brand_trend(
    conn: Connection,
    brand_id: int,
    base_unit: BaseUnit | str,
    store_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[TrendPoint]:
    _require(conn, brands, brand_id, "Brand")
    return _trend(conn, products.c.brand_id, brand_id, base_unit, store_id, start, end)


def _trend(
    conn: Connection,
    column: Column,
    value: int,
    base_unit: BaseUnit | str,
    store_id: int | None,
    start: date | None,
    end: date | None,
) -> list[TrendPoint]:
    unit = _base_unit(base_unit)
    if store_id is not None:
        _require(conn, stores, store_id, "Store")
    start, end = _window(start, end, TREND_DAYS)
    stmt = (
        select(
            price_entries.c.entry_date,
            price_entries.c.price,
            price_entries.c.package_quantity,
            price_entries.c.package_unit,
        )
        .join(products, products.c.id == price_entries.c.product_id)
        .where(column == value, price_entries.c.entry_date >= start, price_entries.c.entry_date <= end)
    )
    if store_id is not None:
        stmt = stmt.where(price_entries.c.store_id == store_id)

    records = []
    for row in conn.execute(stmt):
        package_unit = UnitOfMeasure(row.package_unit)
        if standard_unit_for(package_unit) is not unit:
            continue
        per_unit = price_per_standard_unit(Decimal(row.price), Decimal(row.package_quantity), package_unit)
        records.append((row.entry_date, int(per_unit / CENT)))
    if not records:
        return []

    frame = pd.DataFrame(records, columns=["day", "cents"])
    grouped = (
        frame.groupby("day")
        .agg(mean_cents=("cents", "mean"), observations=("cents", "count"))
        .reset_index()
        .sort_values("day")
    )
    return [
        TrendPoint(
            day=row.day,
            average_price_per_unit=quantize_money(Decimal(str(row.mean_cents)) * CENT),
            observations=int(row.observations),
        )
        for row in grouped.itertuples(index=False)
    ]


def _base_unit(value: BaseUnit | str) -> BaseUnit:
    try:
        return BaseUnit(value.upper() if isinstance(value, str) else value)
    except ValueError as exc:
        raise InvalidInputError(f"Unsupported base unit {value!r}; expected KG or L") from exc


def _window(start: date | None, end: date | None, days: int) -> tuple[date, date]:
    end = end or today_in_tz()
    start = start or end - timedelta(days=days)
    if start > end:
        raise InvalidInputError(f"Start date {start} is after end date {end}")
    return start, end


def _require(conn: Connection, table: Table, entity_id: int, label: str) -> None:
    if conn.execute(select(table.c.id).where(table.c.id == entity_id)).first() is None:
        raise NotFoundError(f"{label} {entity_id} not found")
