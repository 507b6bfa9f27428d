"""Idempotent price observation writes keyed by (product, store, date)."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection
from sqlalchemy.exc import MultipleResultsFound

from pricecompare.db.tables import price_entries
from pricecompare.errors import InconsistentDataError
from pricecompare.ingest.models import PriceEntry, Product, Store, UpsertAction
from pricecompare.ingest.units import UnitOfMeasure
from pricecompare.utils.dates import utcnow

logger = logging.getLogger(__name__)


def find_price_entry(conn: Connection, product_id: int, store_id: int, entry_date: date) -> PriceEntry | None:
    stmt = select(price_entries).where(
        price_entries.c.product_id == product_id,
        price_entries.c.store_id == store_id,
        price_entries.c.entry_date == entry_date,
    )
    try:
        row = conn.execute(stmt).mappings().one_or_none()
    except MultipleResultsFound as exc:
        raise InconsistentDataError(
            f"Several price entries for product {product_id}, store {store_id}, date {entry_date}"
        ) from exc
    return PriceEntry.from_row(row) if row else None


def upsert_price_entry(
    conn: Connection,
    *,
    product: Product,
    store: Store,
    entry_date: date,
    store_product_id: str | None,
    price: Decimal,
    currency: str,
    package_quantity: Decimal,
    package_unit: UnitOfMeasure,
) -> tuple[PriceEntry, UpsertAction]:
    """Insert the observation, or fully replace the mutable fields of the existing one."""
    if price <= 0:
        raise ValueError(f"Price must be positive, got {price}")
    if package_quantity <= 0:
        raise ValueError(f"Package quantity must be positive, got {package_quantity}")
    if not currency or not currency.strip():
        raise ValueError("Currency must be provided")

    values = {
        "store_product_id": store_product_id,
        "price": price,
        "currency": currency.strip(),
        "package_quantity": package_quantity,
        "package_unit": package_unit.value,
    }
    now = utcnow()
    existing = find_price_entry(conn, product.id, store.id, entry_date)
    if existing is not None:
        logger.debug(
            "Updating price entry product=%s store=%s date=%s: %s -> %s",
            product.id,
            store.name,
            entry_date,
            existing.price,
            price,
        )
        conn.execute(update(price_entries).where(price_entries.c.id == existing.id).values(**values, updated_at=now))
        action = UpsertAction.UPDATE
    else:
        logger.debug("Creating price entry product=%s store=%s date=%s price=%s", product.id, store.name, entry_date, price)
        conn.execute(
            insert(price_entries).values(
                product_id=product.id,
                store_id=store.id,
                entry_date=entry_date,
                created_at=now,
                updated_at=now,
                **values,
            )
        )
        action = UpsertAction.INSERT
    saved = find_price_entry(conn, product.id, store.id, entry_date)
    if saved is None:
        raise InconsistentDataError(f"Price entry for product {product.id} on {entry_date} vanished after write")
    return saved, action
