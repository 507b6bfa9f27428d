from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy.pool import StaticPool

from pricecompare.db.migrate import run_migrations
from pricecompare.db.session import create_engine_for_url
from pricecompare.ingest.catalog import CatalogResolver
from pricecompare.ingest.discounts import upsert_discount
from pricecompare.ingest.prices import upsert_price_entry
from pricecompare.ingest.units import UnitOfMeasure

PRICE_HEADER = "product_id;product_name;product_category;brand;package_quantity;package_unit;price;currency"
DISCOUNT_HEADER = (
    "product_id;product_name;brand;package_quantity;package_unit;product_category;from_date;to_date;percentage_of_discount"
)

AS_OF = date(2025, 5, 8)


@pytest.fixture()
def engine():
    engine = create_engine_for_url(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    run_migrations(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def conn(engine):
    with engine.connect() as connection:
        with connection.begin():
            yield connection


def write_csv(directory: Path, name: str, header: str, *rows: str) -> Path:
    path = directory / name
    path.write_text("\n".join([header, *rows]) + "\n", encoding="utf-8")
    return path


def add_price(conn, store, product, price, entry_date=AS_OF, quantity="1", unit=UnitOfMeasure.L):
    entry, _ = upsert_price_entry(
        conn,
        product=product,
        store=store,
        entry_date=entry_date,
        store_product_id=None,
        price=Decimal(price),
        currency="RON",
        package_quantity=Decimal(quantity),
        package_unit=unit,
    )
    return entry


def add_discount(conn, store, product, percentage, from_date, to_date, recorded=None, quantity="1", unit=UnitOfMeasure.L):
    discount, _ = upsert_discount(
        conn,
        product=product,
        store=store,
        package_quantity=Decimal(quantity),
        package_unit=unit,
        percentage=percentage,
        from_date=from_date,
        to_date=to_date,
        recorded_at_date=recorded or from_date,
    )
    return discount


@pytest.fixture()
def market(engine):
    """Three stores pricing the same milk, one with an active 20% discount."""
    with engine.begin() as conn:
        catalog = CatalogResolver(conn)
        lidl = catalog.resolve_store("Lidl")
        kaufland = catalog.resolve_store("Kaufland")
        profi = catalog.resolve_store("Profi")
        dairy = catalog.resolve_category("lactate")
        bakery = catalog.resolve_category("panificatie")
        brand_x = catalog.resolve_brand("BrandX")
        boromir = catalog.resolve_brand("Boromir")
        milk = catalog.resolve_product("Milk", brand_x, dairy)
        bread = catalog.resolve_product("Paine alba", boromir, bakery)

        add_price(conn, lidl, milk, "10.00")
        add_price(conn, kaufland, milk, "9.00")
        add_price(conn, profi, milk, "8.00")
        add_discount(conn, profi, milk, 20, date(2025, 5, 1), date(2025, 5, 14))

        add_price(conn, lidl, bread, "3.20", quantity="500", unit=UnitOfMeasure.G)
        add_price(conn, kaufland, bread, "2.95", quantity="500", unit=UnitOfMeasure.G)

    return {
        "stores": {"lidl": lidl, "kaufland": kaufland, "profi": profi},
        "products": {"milk": milk, "bread": bread},
        "categories": {"dairy": dairy, "bakery": bakery},
        "brands": {"brand_x": brand_x, "boromir": boromir},
    }
