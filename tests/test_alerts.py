from datetime import date, datetime
from decimal import Decimal

import pytest

from conftest import AS_OF
from pricecompare.errors import InvalidInputError, NotFoundError
from pricecompare.ingest.models import PriceEntry
from pricecompare.ingest.units import UnitOfMeasure
from pricecompare.logic import alerts


def _entry(store_id, price):
    return PriceEntry(
        product_id=1,
        store_id=store_id,
        entry_date=AS_OF,
        price=Decimal(price),
        currency="RON",
        package_quantity=Decimal("1"),
        package_unit=UnitOfMeasure.L,
    )


def test_pick_triggering_entry():
    entries = [_entry(3, "8.00"), _entry(1, "7.50"), _entry(2, "7.50"), _entry(4, "12.00")]
    assert alerts.pick_triggering_entry(entries, Decimal("9.00")).store_id == 1
    assert alerts.pick_triggering_entry(entries, Decimal("7.50")).store_id == 1
    assert alerts.pick_triggering_entry(entries, Decimal("7.49")) is None
    assert alerts.pick_triggering_entry([], Decimal("100")) is None


def test_create_and_list_alerts(market, conn):
    milk = market["products"]["milk"]
    created = alerts.create_alert(conn, "ana", milk.id, Decimal("7.00"))
    assert created.is_active
    assert created.store_id is None
    assert [a.id for a in alerts.list_alerts(conn, "ana")] == [created.id]
    assert alerts.list_alerts(conn, "bogdan") == []


def test_create_alert_validation(market, conn):
    milk = market["products"]["milk"]
    with pytest.raises(NotFoundError):
        alerts.create_alert(conn, "ana", 9999, Decimal("7.00"))
    with pytest.raises(NotFoundError):
        alerts.create_alert(conn, "ana", milk.id, Decimal("7.00"), store_id=9999)
    with pytest.raises(InvalidInputError):
        alerts.create_alert(conn, "ana", milk.id, Decimal("0"))
    alerts.create_alert(conn, "ana", milk.id, Decimal("7.00"))
    with pytest.raises(InvalidInputError):
        alerts.create_alert(conn, "ana", milk.id, Decimal("6.00"))
    # A store-specific alert is a different alert.
    alerts.create_alert(conn, "ana", milk.id, Decimal("6.00"), store_id=market["stores"]["lidl"].id)


def test_deactivate_alert(market, conn):
    alert = alerts.create_alert(conn, "ana", market["products"]["milk"].id, Decimal("7.00"))
    with pytest.raises(InvalidInputError):
        alerts.deactivate_alert(conn, alert.id, "bogdan")
    with pytest.raises(NotFoundError):
        alerts.deactivate_alert(conn, 9999, "ana")
    assert not alerts.deactivate_alert(conn, alert.id, "ana").is_active
    assert not alerts.deactivate_alert(conn, alert.id, "ana").is_active
    assert alerts.list_alerts(conn, "ana") == []
    assert len(alerts.list_alerts(conn, "ana", active_only=False)) == 1


def test_check_alerts_triggers_cheapest_store(market, conn):
    milk = market["products"]["milk"]
    now = datetime(2025, 5, 8, 2, 0)
    hit = alerts.create_alert(conn, "ana", milk.id, Decimal("9.50"))
    miss = alerts.create_alert(conn, "bogdan", milk.id, Decimal("7.00"))
    pinned = alerts.create_alert(conn, "carmen", milk.id, Decimal("9.50"), store_id=market["stores"]["lidl"].id)

    triggered = alerts.check_alerts(conn, AS_OF, now=now)

    assert [a.id for a in triggered] == [hit.id]
    fired = triggered[0]
    assert not fired.is_active
    assert fired.triggered_price == Decimal("8.00")
    assert fired.triggered_store_id == market["stores"]["profi"].id
    assert fired.notified_at == now
    assert alerts.get_alert(conn, miss.id).is_active
    assert alerts.get_alert(conn, pinned.id).is_active
    assert alerts.check_alerts(conn, AS_OF, now=now) == []


def test_check_alerts_before_any_price(market, conn):
    alerts.create_alert(conn, "ana", market["products"]["milk"].id, Decimal("100"))
    assert alerts.check_alerts(conn, date(2025, 1, 1)) == []
