"""Discount listings enriched with the list price they apply to."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.engine import Connection
from sqlalchemy.sql import Select

from pricecompare.db.tables import brands, discounts, products, stores
from pricecompare.errors import InvalidInputError
from pricecompare.ingest.models import Discount
from pricecompare.logic.pricing import discounted_price, original_price_for

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DiscountListing:
    discount_id: int
    product_id: int
    product_name: str
    brand_name: str
    store_id: int
    store_name: str
    percentage: int
    from_date: date
    to_date: date
    recorded_at_date: date
    package_quantity: Decimal
    package_unit: str
    original_price: Decimal
    discounted_price: Decimal
    currency: str


def best_active_discounts(conn: Connection, as_of: date) -> list[DiscountListing]:
    stmt = (
        _listing_query()
        .where(discounts.c.from_date <= as_of, discounts.c.to_date >= as_of)
        .order_by(discounts.c.percentage.desc(), discounts.c.id)
    )
    return _enrich(conn, stmt, as_of)


def newly_added_discounts(conn: Connection, since: date, as_of: date) -> list[DiscountListing]:
    if since > as_of:
        raise InvalidInputError(f"'since' ({since}) is after the reference date ({as_of})")
    stmt = (
        _listing_query()
        .where(discounts.c.recorded_at_date >= since, discounts.c.recorded_at_date <= as_of)
        .order_by(discounts.c.recorded_at_date.desc(), discounts.c.percentage.desc(), discounts.c.id)
    )
    return _enrich(conn, stmt, as_of)


def _listing_query() -> Select:
    return (
        select(
            discounts,
            products.c.name.label("product_name"),
            brands.c.name.label("brand_name"),
            stores.c.name.label("store_name"),
        )
        .join(products, products.c.id == discounts.c.product_id)
        .join(brands, brands.c.id == products.c.brand_id)
        .join(stores, stores.c.id == discounts.c.store_id)
    )


def _enrich(conn: Connection, stmt: Select, as_of: date) -> list[DiscountListing]:
    listings: list[DiscountListing] = []
    for row in conn.execute(stmt).mappings():
        discount = Discount.from_row(row)
        original = original_price_for(conn, discount, as_of)
        if original is None:
            logger.warning(
                "No %s %s price for product %s at %s on or before %s; leaving discount %s out",
                discount.package_quantity,
                discount.package_unit.value,
                row["product_name"],
                row["store_name"],
                as_of,
                discount.id,
            )
            continue
        listings.append(
            DiscountListing(
                discount_id=discount.id,
                product_id=discount.product_id,
                product_name=row["product_name"],
                brand_name=row["brand_name"],
                store_id=discount.store_id,
                store_name=row["store_name"],
                percentage=discount.percentage,
                from_date=discount.from_date,
                to_date=discount.to_date,
                recorded_at_date=discount.recorded_at_date,
                package_quantity=discount.package_quantity,
                package_unit=discount.package_unit.value,
                original_price=original.price,
                discounted_price=discounted_price(original.price, discount.percentage),
                currency=original.currency,
            )
        )
    return listings
