"""Table definitions for the price catalog."""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

MONEY = Numeric(12, 2)
QUANTITY = Numeric(10, 3)


def _named_table(name: str) -> Table:
    return Table(
        name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("name", Text, nullable=False),
        Column("lookup_key", String(255), nullable=False, unique=True),
        Column("created_at", DateTime, nullable=False),
        Column("updated_at", DateTime, nullable=False),
    )


stores = _named_table("stores")
brands = _named_table("brands")
categories = _named_table("categories")

products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False),
    Column("lookup_key", String(255), nullable=False),
    Column("brand_id", Integer, ForeignKey("brands.id"), nullable=False),
    Column("category_id", Integer, ForeignKey("categories.id"), nullable=False),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    UniqueConstraint("lookup_key", "brand_id", name="uq_products_name_brand"),
)

price_entries = Table(
    "price_entries",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("product_id", Integer, ForeignKey("products.id"), nullable=False),
    Column("store_id", Integer, ForeignKey("stores.id"), nullable=False),
    Column("entry_date", Date, nullable=False),
    Column("store_product_id", String(64)),
    Column("price", MONEY, nullable=False),
    Column("currency", String(3), nullable=False),
    Column("package_quantity", QUANTITY, nullable=False),
    Column("package_unit", String(16), nullable=False),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    UniqueConstraint("product_id", "store_id", "entry_date", name="uq_price_entries_product_store_date"),
    CheckConstraint("price > 0", name="ck_price_entries_price_positive"),
    CheckConstraint("package_quantity > 0", name="ck_price_entries_quantity_positive"),
)

discounts = Table(
    "discounts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("product_id", Integer, ForeignKey("products.id"), nullable=False),
    Column("store_id", Integer, ForeignKey("stores.id"), nullable=False),
    Column("percentage", Integer, nullable=False),
    Column("from_date", Date, nullable=False),
    Column("to_date", Date, nullable=False),
    Column("recorded_at_date", Date, nullable=False),
    Column("package_quantity", QUANTITY, nullable=False),
    Column("package_unit", String(16), nullable=False),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    UniqueConstraint(
        "product_id",
        "store_id",
        "from_date",
        "package_quantity",
        "package_unit",
        name="uq_discounts_natural_key",
    ),
    CheckConstraint("percentage BETWEEN 1 AND 100", name="ck_discounts_percentage_range"),
    CheckConstraint("to_date >= from_date", name="ck_discounts_window"),
)

price_alerts = Table(
    "price_alerts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(100), nullable=False),
    Column("product_id", Integer, ForeignKey("products.id"), nullable=False),
    Column("store_id", Integer, ForeignKey("stores.id")),
    Column("target_price", MONEY, nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("notified_at", DateTime),
    Column("triggered_price", MONEY),
    Column("triggered_store_id", Integer, ForeignKey("stores.id")),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    CheckConstraint("target_price > 0", name="ck_price_alerts_target_positive"),
)
