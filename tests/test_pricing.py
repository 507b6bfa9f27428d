from datetime import date
from decimal import Decimal

from conftest import AS_OF, add_discount, add_price
from pricecompare.ingest.units import UnitOfMeasure
from pricecompare.logic import pricing


def test_discounted_price_rounds_half_up():
    assert pricing.discounted_price(Decimal("8.00"), 20) == Decimal("6.40")
    assert pricing.discounted_price(Decimal("9.99"), 15) == Decimal("8.49")
    assert pricing.discounted_price(Decimal("0.05"), 50) == Decimal("0.03")
    assert pricing.discounted_price(Decimal("12.00"), 100) == Decimal("0.00")


def test_latest_price_ignores_future_entries(market, conn):
    milk = market["products"]["milk"]
    lidl = market["stores"]["lidl"]
    add_price(conn, lidl, milk, "11.00", entry_date=date(2025, 5, 1))
    add_price(conn, lidl, milk, "12.00", entry_date=date(2025, 5, 20))

    assert pricing.latest_price(conn, milk.id, date(2025, 5, 5), store_id=lidl.id).price == Decimal("11.00")
    assert pricing.latest_price(conn, milk.id, AS_OF, store_id=lidl.id).price == Decimal("10.00")
    assert pricing.latest_price(conn, milk.id, date(2025, 5, 25), store_id=lidl.id).price == Decimal("12.00")
    assert pricing.latest_price(conn, milk.id, date(2025, 4, 1)) is None


def test_latest_price_filters_by_package(market, conn):
    milk = market["products"]["milk"]
    lidl = market["stores"]["lidl"]
    assert pricing.latest_price(conn, milk.id, AS_OF, store_id=lidl.id, package_quantity=Decimal("2")) is None
    found = pricing.latest_price(
        conn, milk.id, AS_OF, store_id=lidl.id, package_quantity=Decimal("1"), package_unit=UnitOfMeasure.L
    )
    assert found.price == Decimal("10.00")


def test_latest_prices_per_store(market, conn):
    milk = market["products"]["milk"]
    kaufland = market["stores"]["kaufland"]
    add_price(conn, kaufland, milk, "9.50", entry_date=date(2025, 5, 2))

    entries = pricing.latest_prices_per_store(conn, milk.id, AS_OF)

    assert [entry.store_id for entry in entries] == sorted(s.id for s in market["stores"].values())
    assert {entry.store_id: entry.price for entry in entries}[kaufland.id] == Decimal("9.00")


def test_active_discount_window_is_inclusive(market, conn):
    milk = market["products"]["milk"]
    profi = market["stores"]["profi"]
    assert pricing.best_active_discount(conn, milk.id, date(2025, 5, 1), store_id=profi.id).percentage == 20
    assert pricing.best_active_discount(conn, milk.id, date(2025, 5, 14), store_id=profi.id).percentage == 20
    assert pricing.best_active_discount(conn, milk.id, date(2025, 5, 15), store_id=profi.id) is None


def test_best_active_discount_prefers_highest_percentage(market, conn):
    milk = market["products"]["milk"]
    profi = market["stores"]["profi"]
    add_discount(conn, profi, milk, 35, date(2025, 5, 6), date(2025, 5, 9))
    found = pricing.active_discounts(conn, milk.id, AS_OF, store_id=profi.id)
    assert [d.percentage for d in found] == [35, 20]


def test_original_price_requires_exact_package(market, conn):
    milk = market["products"]["milk"]
    profi = market["stores"]["profi"]
    exact = pricing.active_discounts(conn, milk.id, AS_OF, store_id=profi.id)[0]
    other_size = add_discount(conn, profi, milk, 30, date(2025, 5, 1), date(2025, 5, 14), quantity="2")

    assert pricing.original_price_for(conn, exact, AS_OF).price == Decimal("8.00")
    assert pricing.original_price_for(conn, other_size, AS_OF) is None


def test_effective_price(market, conn):
    milk = market["products"]["milk"]
    entries = {entry.store_id: entry for entry in pricing.latest_prices_per_store(conn, milk.id, AS_OF)}
    profi = pricing.effective_price(conn, entries[market["stores"]["profi"].id], AS_OF)
    lidl = pricing.effective_price(conn, entries[market["stores"]["lidl"].id], AS_OF)
    assert profi.unit_price == Decimal("6.40")
    assert profi.is_discounted
    assert lidl.unit_price == Decimal("10.00")
    assert not lidl.is_discounted


def test_is_active_window_bounds(market, conn):
    milk = market["products"]["milk"]
    profi = market["stores"]["profi"]
    discount = add_discount(conn, profi, milk, 5, date(2025, 6, 1), date(2025, 6, 3))
    assert not pricing.is_active(discount, date(2025, 5, 31))
    assert pricing.is_active(discount, date(2025, 6, 1))
    assert pricing.is_active(discount, date(2025, 6, 3))
    assert not pricing.is_active(discount, date(2025, 6, 4))
