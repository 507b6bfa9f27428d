from datetime import date
from decimal import Decimal

import pytest

from conftest import AS_OF, add_price
from pricecompare.errors import InvalidInputError, NotFoundError
from pricecompare.ingest.units import BaseUnit, UnitOfMeasure
from pricecompare.logic.history import brand_trend, category_trend, product_history


def test_product_history_in_range(market, conn):
    milk = market["products"]["milk"]
    lidl = market["stores"]["lidl"]
    add_price(conn, lidl, milk, "10.50", entry_date=date(2025, 5, 1))
    add_price(conn, lidl, milk, "11.00", entry_date=date(2024, 1, 1))

    points = product_history(conn, milk.id, store_id=lidl.id, start=date(2025, 1, 1), end=AS_OF)

    assert [(p.entry_date, p.price) for p in points] == [
        (date(2025, 5, 1), Decimal("10.50")),
        (AS_OF, Decimal("10.00")),
    ]
    assert {p.store_name for p in points} == {"Lidl"}


def test_product_history_all_stores(market, conn):
    milk = market["products"]["milk"]
    points = product_history(conn, milk.id, start=date(2025, 5, 1), end=AS_OF)
    assert [p.store_name for p in points] == ["Lidl", "Kaufland", "Profi"]


def test_product_history_errors(market, conn):
    with pytest.raises(NotFoundError):
        product_history(conn, 9999)
    with pytest.raises(NotFoundError):
        product_history(conn, market["products"]["milk"].id, store_id=9999)
    with pytest.raises(InvalidInputError):
        product_history(conn, market["products"]["milk"].id, start=AS_OF, end=date(2025, 5, 1))


def test_category_trend_averages_per_day(market, conn):
    bread = market["products"]["bread"]
    add_price(conn, market["stores"]["lidl"], bread, "3.40", entry_date=date(2025, 5, 7), quantity="500", unit=UnitOfMeasure.G)

    points = category_trend(conn, market["categories"]["bakery"].id, BaseUnit.KG, start=date(2025, 5, 1), end=AS_OF)

    assert [(p.day, p.average_price_per_unit, p.observations) for p in points] == [
        (date(2025, 5, 7), Decimal("6.80"), 1),
        (AS_OF, Decimal("6.15"), 2),
    ]


def test_trend_only_counts_requested_base_unit(market, conn):
    dairy = market["categories"]["dairy"].id
    assert category_trend(conn, dairy, "kg", start=date(2025, 5, 1), end=AS_OF) == []
    points = category_trend(conn, dairy, "L", start=date(2025, 5, 1), end=AS_OF)
    assert [(p.average_price_per_unit, p.observations) for p in points] == [(Decimal("9.00"), 3)]


def test_brand_trend(market, conn):
    points = brand_trend(conn, market["brands"]["boromir"].id, BaseUnit.KG, store_id=market["stores"]["lidl"].id, start=date(2025, 5, 1), end=AS_OF)
    assert [(p.day, p.average_price_per_unit) for p in points] == [(AS_OF, Decimal("6.40"))]


def test_trend_errors(market, conn):
    with pytest.raises(NotFoundError):
        brand_trend(conn, 9999, BaseUnit.KG)
    with pytest.raises(InvalidInputError):
        category_trend(conn, market["categories"]["dairy"].id, "pieces")
