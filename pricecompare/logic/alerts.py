"""Target-price alerts: registration and the scheduled trigger check."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection

from pricecompare.db.tables import price_alerts
from pricecompare.errors import InvalidInputError, NotFoundError
from pricecompare.ingest.catalog import CatalogResolver
from pricecompare.ingest.models import PriceEntry
from pricecompare.logic.pricing import latest_price, latest_prices_per_store
from pricecompare.utils.dates import utcnow

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PriceAlert:
    id: int
    user_id: str
    product_id: int
    store_id: int | None
    target_price: Decimal
    is_active: bool
    notified_at: datetime | None
    triggered_price: Decimal | None
    triggered_store_id: int | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PriceAlert":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            product_id=row["product_id"],
            store_id=row["store_id"],
            target_price=Decimal(row["target_price"]),
            is_active=bool(row["is_active"]),
            notified_at=row["notified_at"],
            triggered_price=Decimal(row["triggered_price"]) if row["triggered_price"] is not None else None,
            triggered_store_id=row["triggered_store_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


def pick_triggering_entry(entries: Iterable[PriceEntry], target: Decimal) -> PriceEntry | None:
    """Cheapest entry at or below ``target``; equal prices go to the lowest store id."""
    candidates = [entry for entry in entries if entry.price <= target]
    if not candidates:
        return None
    return min(candidates, key=lambda entry: (entry.price, entry.store_id))


def get_alert(conn: Connection, alert_id: int) -> PriceAlert:
    row = conn.execute(select(price_alerts).where(price_alerts.c.id == alert_id)).mappings().one_or_none()
    if row is None:
        raise NotFoundError(f"Price alert {alert_id} not found")
    return PriceAlert.from_row(row)


def create_alert(
    conn: Connection,
    user_id: str,
    product_id: int,
    target_price: Decimal,
    store_id: int | None = None,
) -> PriceAlert:
    if not user_id or not user_id.strip():
        raise InvalidInputError("user_id must not be blank")
    if target_price <= 0:
        raise InvalidInputError(f"Target price must be positive, got {target_price}")
    catalog = CatalogResolver(conn)
    if catalog.get_product(product_id) is None:
        raise NotFoundError(f"Product {product_id} not found")
    if store_id is not None and catalog.get_store(store_id) is None:
        raise NotFoundError(f"Store {store_id} not found")

    user_id = user_id.strip()
    duplicate = select(price_alerts.c.id).where(
        price_alerts.c.user_id == user_id,
        price_alerts.c.product_id == product_id,
        price_alerts.c.is_active.is_(True),
        price_alerts.c.store_id == store_id if store_id is not None else price_alerts.c.store_id.is_(None),
    )
    if conn.execute(duplicate).first() is not None:
        raise InvalidInputError(f"User {user_id} already has an active alert for product {product_id}")

    now = utcnow()
    result = conn.execute(
        insert(price_alerts).values(
            user_id=user_id,
            product_id=product_id,
            store_id=store_id,
            target_price=target_price,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
    )
    alert = get_alert(conn, result.inserted_primary_key[0])
    logger.info("Created price alert %s for user %s on product %s at %s", alert.id, user_id, product_id, target_price)
    return alert


def list_alerts(conn: Connection, user_id: str, active_only: bool = True) -> list[PriceAlert]:
    stmt = select(price_alerts).where(price_alerts.c.user_id == user_id.strip())
    if active_only:
        stmt = stmt.where(price_alerts.c.is_active.is_(True))
    stmt = stmt.order_by(price_alerts.c.created_at.desc(), price_alerts.c.id.desc())
    return [PriceAlert.from_row(row) for row in conn.execute(stmt).mappings()]


def deactivate_alert(conn: Connection, alert_id: int, user_id: str) -> PriceAlert:
    alert = get_alert(conn, alert_id)
    if alert.user_id != user_id.strip():
        raise InvalidInputError(f"Price alert {alert_id} does not belong to user {user_id}")
    if not alert.is_active:
        return alert
    conn.execute(
        update(price_alerts).where(price_alerts.c.id == alert_id).values(is_active=False, updated_at=utcnow())
    )
    logger.info("Deactivated price alert %s", alert_id)
    return get_alert(conn, alert_id)


def check_alerts(conn: Connection, as_of: date, now: datetime | None = None) -> list[PriceAlert]:
    """Trigger every active alert whose target is met by a current price."""
    now = now or utcnow()
    active = conn.execute(
        select(price_alerts).where(price_alerts.c.is_active.is_(True)).order_by(price_alerts.c.id)
    ).mappings().all()
    triggered: list[PriceAlert] = []
    for row in active:
        alert = PriceAlert.from_row(row)
        if alert.store_id is not None:
            entry = latest_price(conn, alert.product_id, as_of, store_id=alert.store_id)
            entries = [entry] if entry else []
        else:
            entries = latest_prices_per_store(conn, alert.product_id, as_of)
        hit = pick_triggering_entry(entries, alert.target_price)
        if hit is None:
            continue
        conn.execute(
            update(price_alerts)
            .where(price_alerts.c.id == alert.id)
            .values(
                is_active=False,
                notified_at=now,
                triggered_price=hit.price,
                triggered_store_id=hit.store_id,
                updated_at=now,
            )
        )
        logger.info(
            "Alert %s triggered for user %s: product %s at %s in store %s (target %s)",
            alert.id,
            alert.user_id,
            alert.product_id,
            hit.price,
            hit.store_id,
            alert.target_price,
        )
        triggered.append(get_alert(conn, alert.id))
    logger.info("Checked %s active alerts, %s triggered", len(active), len(triggered))
    return triggered
