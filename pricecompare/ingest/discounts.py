"""Discount window writes with recorded-date conflict resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection
from sqlalchemy.exc import MultipleResultsFound

from pricecompare.db.tables import discounts
from pricecompare.errors import InconsistentDataError
from pricecompare.ingest.models import Discount, Product, Store, UpsertAction
from pricecompare.ingest.units import UnitOfMeasure
from pricecompare.utils.dates import utcnow

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class DiscountObservation:
    percentage: int
    to_date: date
    recorded_at_date: date


def decide(existing: Discount | None, incoming: DiscountObservation) -> UpsertAction:
    """Resolve an incoming observation against the stored discount for the same natural key.

    * nothing stored: insert
    * stored record observed later than the incoming one: stale, keep stored
    * same observation date and same content: nothing to write
    * otherwise (newer, or same date with different content): overwrite
    """
    if existing is None:
        return UpsertAction.INSERT
    if existing.recorded_at_date > incoming.recorded_at_date:
        return UpsertAction.NOOP
    if (
        existing.recorded_at_date == incoming.recorded_at_date
        and existing.percentage == incoming.percentage
        and existing.to_date == incoming.to_date
    ):
        return UpsertAction.NOOP
    return UpsertAction.UPDATE


def find_discount(
    conn: Connection,
    product_id: int,
    store_id: int,
    from_date: date,
    package_quantity: Decimal,
    package_unit: UnitOfMeasure,
) -> Discount | None:
    stmt = select(discounts).where(
        discounts.c.product_id == product_id,
        discounts.c.store_id == store_id,
        discounts.c.from_date == from_date,
        discounts.c.package_quantity == package_quantity,
        discounts.c.package_unit == package_unit.value,
    )
    try:
        row = conn.execute(stmt).mappings().one_or_none()
    except MultipleResultsFound as exc:
        raise InconsistentDataError(
            f"Several discounts for product {product_id}, store {store_id}, from {from_date}"
        ) from exc
    return Discount.from_row(row) if row else None


def upsert_discount(
    conn: Connection,
    *,
    product: Product,
    store: Store,
    package_quantity: Decimal,
    package_unit: UnitOfMeasure,
    percentage: int,
    from_date: date,
    to_date: date,
    recorded_at_date: date,
) -> tuple[Discount, UpsertAction]:
    if not 1 <= percentage <= 100:
        raise ValueError(f"Discount percentage must be within 1..100, got {percentage}")
    if to_date < from_date:
        raise ValueError(f"Discount window ends ({to_date}) before it starts ({from_date})")

    key = (product.id, store.id, from_date, package_quantity, package_unit)
    existing = find_discount(conn, *key)
    action = decide(existing, DiscountObservation(percentage, to_date, recorded_at_date))
    now = utcnow()
    if action is UpsertAction.NOOP:
        logger.debug(
            "Keeping discount id=%s (stored recorded %s, incoming %s)",
            existing.id,
            existing.recorded_at_date,
            recorded_at_date,
        )
        return existing, action
    if action is UpsertAction.UPDATE:
        logger.debug(
            "Updating discount id=%s: %s%% until %s -> %s%% until %s",
            existing.id,
            existing.percentage,
            existing.to_date,
            percentage,
            to_date,
        )
        conn.execute(
            update(discounts)
            .where(discounts.c.id == existing.id)
            .values(percentage=percentage, to_date=to_date, recorded_at_date=recorded_at_date, updated_at=now)
        )
    else:
        logger.debug("Creating discount product=%s store=%s from=%s %s%%", product.id, store.name, from_date, percentage)
        conn.execute(
            insert(discounts).values(
                product_id=product.id,
                store_id=store.id,
                percentage=percentage,
                from_date=from_date,
                to_date=to_date,
                recorded_at_date=recorded_at_date,
                package_quantity=package_quantity,
                package_unit=package_unit.value,
                created_at=now,
                updated_at=now,
            )
        )
    saved = find_discount(conn, *key)
    if saved is None:
        raise InconsistentDataError(f"Discount for product {product.id} from {from_date} vanished after write")
    return saved, action
