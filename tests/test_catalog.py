import pytest
from sqlalchemy import func, select

from pricecompare.db.tables import brands, products, stores
from pricecompare.errors import InconsistentDataError
from pricecompare.ingest.catalog import CatalogResolver
from pricecompare.ingest.models import Brand, Store


def test_resolve_store_is_case_insensitive(conn):
    catalog = CatalogResolver(conn)
    first = catalog.resolve_store("Lidl")
    second = catalog.resolve_store("  LIDL ")
    assert first.id == second.id
    assert first == second
    assert first.name == "Lidl"
    assert conn.execute(select(func.count()).select_from(stores)).scalar() == 1


def test_blank_names_are_rejected(conn):
    catalog = CatalogResolver(conn)
    with pytest.raises(ValueError):
        catalog.resolve_brand("   ")
    with pytest.raises(ValueError):
        catalog.resolve_category(None)


def test_find_brand_does_not_create(conn):
    catalog = CatalogResolver(conn)
    assert catalog.find_brand("Zuzu") is None
    assert conn.execute(select(func.count()).select_from(brands)).scalar() == 0


def test_same_product_name_under_different_brands(conn):
    catalog = CatalogResolver(conn)
    dairy = catalog.resolve_category("lactate")
    zuzu = catalog.resolve_product("Lapte", catalog.resolve_brand("Zuzu"), dairy)
    napolact = catalog.resolve_product("lapte", catalog.resolve_brand("Napolact"), dairy)
    assert zuzu.id != napolact.id
    assert catalog.resolve_product("LAPTE", catalog.resolve_brand("zuzu"), dairy).id == zuzu.id


def test_category_change_overwrites_only_that_product(conn):
    catalog = CatalogResolver(conn)
    brand = catalog.resolve_brand("Zuzu")
    dairy = catalog.resolve_category("lactate")
    drinks = catalog.resolve_category("bauturi")
    milk = catalog.resolve_product("Lapte", brand, dairy)
    butter = catalog.resolve_product("Unt", brand, dairy)

    moved = catalog.resolve_product("Lapte", brand, drinks)

    assert moved.id == milk.id
    assert moved.category_id == drinks.id
    assert catalog.get_product(milk.id).category_id == drinks.id
    assert catalog.get_product(butter.id).category_id == dairy.id


def test_conflicting_insert_rereads_existing_row(conn):
    catalog = CatalogResolver(conn)
    existing = catalog.resolve_store("Profi")

    store = catalog._create(
        stores,
        {"name": "Profi", "lookup_key": "profi"},
        lambda: catalog.get_store(existing.id),
        "store 'Profi'",
    )
    assert store.id == existing.id


def test_conflict_without_existing_row_is_inconsistent(conn):
    catalog = CatalogResolver(conn)
    catalog.resolve_store("Mega")
    with pytest.raises(InconsistentDataError):
        catalog._create(stores, {"name": "Mega", "lookup_key": "mega"}, lambda: None, "store 'Mega'")


def test_entity_equality():
    assert Store(name="Lidl") == Store(name=" lidl")
    assert Store(id=1, name="Lidl") != Store(id=2, name="Lidl")
    assert Store(name="Lidl") != Brand(name="Lidl")
    assert len({Brand(name="Zuzu"), Brand(name="ZUZU")}) == 1
