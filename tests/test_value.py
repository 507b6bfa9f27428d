from decimal import Decimal

import pytest

from conftest import AS_OF
from pricecompare.errors import InvalidInputError, NotFoundError
from pricecompare.ingest.catalog import CatalogResolver
from pricecompare.ingest.units import UnitOfMeasure
from pricecompare.logic.value import price_per_standard_unit, products_with_value


def test_price_per_standard_unit():
    assert price_per_standard_unit(Decimal("3.20"), Decimal("500"), UnitOfMeasure.G) == Decimal("6.40")
    assert price_per_standard_unit(Decimal("11.60"), Decimal("0.4"), UnitOfMeasure.KG) == Decimal("29.00")
    assert price_per_standard_unit(Decimal("2.50"), Decimal("330"), UnitOfMeasure.ML) == Decimal("7.58")
    assert price_per_standard_unit(Decimal("9.90"), Decimal("1"), UnitOfMeasure.L) == Decimal("9.90")
    assert price_per_standard_unit(Decimal("22.50"), Decimal("10"), UnitOfMeasure.ROLE) is None
    assert price_per_standard_unit(Decimal("1.00"), Decimal("0"), UnitOfMeasure.KG) is None


def test_products_with_value_sorted_by_unit_price(market, conn):
    catalog = CatalogResolver(conn)
    catalog.resolve_product("Unt", market["brands"]["brand_x"], market["categories"]["dairy"])

    values = products_with_value(conn, AS_OF, sort="price_per_unit")

    assert [v.price_per_unit for v in values] == [
        Decimal("5.90"),
        Decimal("6.40"),
        Decimal("8.00"),
        Decimal("9.00"),
        Decimal("10.00"),
        None,
    ]
    assert values[0].store_name == "Kaufland"
    assert values[0].standard_unit == "KG"
    assert values[-1].product_name == "Unt"
    assert not values[-1].normalizable


def test_products_with_value_descending_keeps_missing_last(market, conn):
    CatalogResolver(conn).resolve_product("Unt", market["brands"]["brand_x"], market["categories"]["dairy"])
    values = products_with_value(conn, AS_OF, sort="-price")
    assert values[0].price == Decimal("10.00")
    assert values[-1].price is None


def test_products_with_value_filters(market, conn):
    bakery = market["categories"]["bakery"]
    lidl = market["stores"]["lidl"]
    assert {v.product_name for v in products_with_value(conn, AS_OF, name="PAIN")} == {"Paine alba"}
    assert {v.product_name for v in products_with_value(conn, AS_OF, category_id=bakery.id)} == {"Paine alba"}
    single = products_with_value(conn, AS_OF, store_id=lidl.id)
    assert [(v.product_name, v.price) for v in single] == [("Milk", Decimal("10.00")), ("Paine alba", Decimal("3.20"))]


def test_products_with_value_rejects_bad_arguments(market, conn):
    with pytest.raises(NotFoundError):
        products_with_value(conn, AS_OF, store_id=999)
    with pytest.raises(InvalidInputError):
        products_with_value(conn, AS_OF, sort="rating")
