"""Resolution of list prices, active discounts and effective prices as of a date."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import and_, func, select
from sqlalchemy.engine import Connection

from pricecompare.db.tables import discounts, price_entries
from pricecompare.ingest.models import Discount, PriceEntry
from pricecompare.ingest.units import UnitOfMeasure

CENT = Decimal("0.01")
HUNDRED = Decimal(100)


@dataclass(slots=True)
class EffectivePrice:
    entry: PriceEntry
    unit_price: Decimal
    discount: Discount | None = None

    @property
    def is_discounted(self) -> bool:
        return self.discount is not None


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def discounted_price(original: Decimal, percentage: int) -> Decimal:
    """``original * (1 - percentage/100)`` rounded half-up to cents."""
    return quantize_money(original * (HUNDRED - Decimal(percentage)) / HUNDRED)


def is_active(discount: Discount, on: date) -> bool:
    return discount.from_date <= on <= discount.to_date


def latest_price(
    conn: Connection,
    product_id: int,
    as_of: date,
    store_id: int | None = None,
    package_quantity: Decimal | None = None,
    package_unit: UnitOfMeasure | None = None,
) -> PriceEntry | None:
    """Most recent entry on or before ``as_of`` matching every given filter.

    Without a store filter several stores may share the latest date; the
    highest entry id wins so the answer is stable.
    """
    stmt = select(price_entries).where(price_entries.c.product_id == product_id, price_entries.c.entry_date <= as_of)
    if store_id is not None:
        stmt = stmt.where(price_entries.c.store_id == store_id)
    if package_quantity is not None:
        stmt = stmt.where(price_entries.c.package_quantity == package_quantity)
    if package_unit is not None:
        stmt = stmt.where(price_entries.c.package_unit == package_unit.value)
    stmt = stmt.order_by(price_entries.c.entry_date.desc(), price_entries.c.id.desc()).limit(1)
    row = conn.execute(stmt).mappings().first()
    return PriceEntry.from_row(row) if row else None


def latest_prices_per_store(conn: Connection, product_id: int, as_of: date) -> list[PriceEntry]:
    """The latest entry on or before ``as_of`` for each store carrying the product, by store id."""
    latest = (
        select(price_entries.c.store_id, func.max(price_entries.c.entry_date).label("entry_date"))
        .where(price_entries.c.product_id == product_id, price_entries.c.entry_date <= as_of)
        .group_by(price_entries.c.store_id)
        .subquery()
    )
    stmt = (
        select(price_entries)
        .join(
            latest,
            and_(
                price_entries.c.store_id == latest.c.store_id,
                price_entries.c.entry_date == latest.c.entry_date,
            ),
        )
        .where(price_entries.c.product_id == product_id)
        .order_by(price_entries.c.store_id)
    )
    return [PriceEntry.from_row(row) for row in conn.execute(stmt).mappings()]


def original_price_for(conn: Connection, discount: Discount, as_of: date) -> PriceEntry | None:
    """The list price a discount applies to: same product, store and exact package."""
    return latest_price(
        conn,
        discount.product_id,
        as_of,
        store_id=discount.store_id,
        package_quantity=discount.package_quantity,
        package_unit=discount.package_unit,
    )


def active_discounts(
    conn: Connection,
    product_id: int,
    as_of: date,
    store_id: int | None = None,
    package_quantity: Decimal | None = None,
    package_unit: UnitOfMeasure | None = None,
) -> list[Discount]:
    stmt = select(discounts).where(
        discounts.c.product_id == product_id,
        discounts.c.from_date <= as_of,
        discounts.c.to_date >= as_of,
    )
    if store_id is not None:
        stmt = stmt.where(discounts.c.store_id == store_id)
    if package_quantity is not None:
        stmt = stmt.where(discounts.c.package_quantity == package_quantity)
    if package_unit is not None:
        stmt = stmt.where(discounts.c.package_unit == package_unit.value)
    stmt = stmt.order_by(discounts.c.percentage.desc(), discounts.c.id)
    return [Discount.from_row(row) for row in conn.execute(stmt).mappings()]


def best_active_discount(
    conn: Connection,
    product_id: int,
    as_of: date,
    store_id: int | None = None,
    package_quantity: Decimal | None = None,
    package_unit: UnitOfMeasure | None = None,
) -> Discount | None:
    found = active_discounts(conn, product_id, as_of, store_id, package_quantity, package_unit)
    return found[0] if found else None


def effective_price(conn: Connection, entry: PriceEntry, as_of: date) -> EffectivePrice:
    discount = best_active_discount(
        conn,
        entry.product_id,
        as_of,
        store_id=entry.store_id,
        package_quantity=entry.package_quantity,
        package_unit=entry.package_unit,
    )
    if discount is None:
        return EffectivePrice(entry=entry, unit_price=entry.price)
    return EffectivePrice(entry=entry, unit_price=discounted_price(entry.price, discount.percentage), discount=discount)
