"""Per-item cheapest-store assignment for a shopping basket."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.engine import Connection

from pricecompare.db.tables import stores
from pricecompare.errors import InvalidInputError
from pricecompare.ingest.catalog import CatalogResolver
from pricecompare.logic.pricing import effective_price, latest_prices_per_store, quantize_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass(slots=True)
class BasketItem:
    product_id: int
    quantity: Decimal


@dataclass(slots=True)
class Offer:
    store_id: int
    store_name: str
    unit_price: Decimal
    cost: Decimal
    regular_unit_price: Decimal
    regular_cost: Decimal
    package_quantity: Decimal
    package_unit: str
    currency: str
    discount_percentage: int | None = None


@dataclass(slots=True)
class BasketLine:
    product_id: int
    product_name: str
    quantity: Decimal
    offer: Offer


@dataclass(slots=True)
class StoreShoppingList:
    store_id: int
    store_name: str
    items: list[BasketLine] = field(default_factory=list)
    subtotal: Decimal = ZERO

    @property
    def item_count(self) -> int:
        return len(self.items)


@dataclass(slots=True)
class UnfulfillableItem:
    product_id: int
    reason: str


@dataclass(slots=True)
class BasketResult:
    as_of: date
    shopping_lists: list[StoreShoppingList]
    grand_total: Decimal
    baseline_total: Decimal
    potential_savings: Decimal
    unfulfillable: list[UnfulfillableItem]


def assign_cheapest(offers_by_product: Mapping[int, Sequence[Offer]]) -> dict[int, Offer]:
    """Pick the lowest-cost offer per product; equal costs keep the first offer seen."""
    chosen: dict[int, Offer] = {}
    for product_id, offers in offers_by_product.items():
        best: Offer | None = None
        for offer in offers:
            if best is None or offer.cost < best.cost:
                best = offer
        if best is not None:
            chosen[product_id] = best
    return chosen


def merge_items(items: Iterable[BasketItem]) -> list[BasketItem]:
    merged: dict[int, BasketItem] = {}
    for item in items:
        quantity = Decimal(item.quantity)
        if quantity <= 0:
            raise InvalidInputError(f"Quantity for product {item.product_id} must be positive, got {item.quantity}")
        if item.product_id in merged:
            merged[item.product_id].quantity += quantity
        else:
            merged[item.product_id] = BasketItem(product_id=item.product_id, quantity=quantity)
    return list(merged.values())


def optimize_basket(conn: Connection, items: Sequence[BasketItem], as_of: date) -> BasketResult:
    if not items:
        raise InvalidInputError("Basket must contain at least one item")
    requested = merge_items(items)
    catalog = CatalogResolver(conn)

    unfulfillable: list[UnfulfillableItem] = []
    offers_by_product: dict[int, list[Offer]] = {}
    names: dict[int, str] = {}
    quantities: dict[int, Decimal] = {}
    for item in requested:
        product = catalog.get_product(item.product_id)
        if product is None:
            unfulfillable.append(UnfulfillableItem(item.product_id, "unknown product"))
            continue
        entries = latest_prices_per_store(conn, product.id, as_of)
        if not entries:
            unfulfillable.append(UnfulfillableItem(item.product_id, f"no price on or before {as_of}"))
            continue
        store_names = _store_names(conn, {entry.store_id for entry in entries})
        offers = []
        for entry in entries:
            price = effective_price(conn, entry, as_of)
            offers.append(
                Offer(
                    store_id=entry.store_id,
                    store_name=store_names[entry.store_id],
                    unit_price=price.unit_price,
                    cost=quantize_money(price.unit_price * item.quantity),
                    regular_unit_price=entry.price,
                    regular_cost=quantize_money(entry.price * item.quantity),
                    package_quantity=entry.package_quantity,
                    package_unit=entry.package_unit.value,
                    currency=entry.currency,
                    discount_percentage=price.discount.percentage if price.discount else None,
                )
            )
        offers_by_product[product.id] = offers
        names[product.id] = product.name
        quantities[product.id] = item.quantity

    chosen = assign_cheapest(offers_by_product)
    lists: dict[int, StoreShoppingList] = {}
    for product_id, offer in chosen.items():
        shopping_list = lists.setdefault(offer.store_id, StoreShoppingList(offer.store_id, offer.store_name))
        shopping_list.items.append(BasketLine(product_id, names[product_id], quantities[product_id], offer))
        shopping_list.subtotal += offer.cost

    ordered = sorted(lists.values(), key=lambda sl: (sl.store_name.casefold(), sl.store_id))
    grand_total = sum((sl.subtotal for sl in ordered), ZERO)
    baseline = sum(
        (max(offer.regular_cost for offer in offers) for offers in offers_by_product.values()),
        ZERO,
    )
    savings = max(ZERO, baseline - grand_total)
    logger.info(
        "Optimized basket of %s products across %s stores: total=%s baseline=%s unfulfillable=%s",
        len(requested),
        len(ordered),
        grand_total,
        baseline,
        len(unfulfillable),
    )
    return BasketResult(
        as_of=as_of,
        shopping_lists=ordered,
        grand_total=grand_total,
        baseline_total=baseline,
        potential_savings=savings,
        unfulfillable=unfulfillable,
    )


def _store_names(conn: Connection, store_ids: set[int]) -> dict[int, str]:
    rows = conn.execute(select(stores.c.id, stores.c.name).where(stores.c.id.in_(store_ids)))
    return {row.id: row.name for row in rows}
