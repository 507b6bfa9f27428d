"""Catalog and ingestion data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from pricecompare.ingest.units import UnitOfMeasure


def lookup_key(name: str) -> str:
    """Case-insensitive natural key for catalog names."""
    return name.strip().casefold()


class UpsertAction(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    NOOP = "noop"


class Entity:
    """Equality by id once both sides are persisted, by natural key before."""

    __slots__ = ()

    id: int | None

    def natural_key(self) -> tuple[Any, ...]:
        raise NotImplementedError

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        if self.id is not None and other.id is not None:  # type: ignore[attr-defined]
            return self.id == other.id  # type: ignore[attr-defined]
        return self.natural_key() == other.natural_key()  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.natural_key()))


@dataclass(slots=True, eq=False, kw_only=True)
class Store(Entity):
    name: str
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def natural_key(self) -> tuple[Any, ...]:
        return (lookup_key(self.name),)


@dataclass(slots=True, eq=False, kw_only=True)
class Brand(Entity):
    name: str
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def natural_key(self) -> tuple[Any, ...]:
        return (lookup_key(self.name),)


@dataclass(slots=True, eq=False, kw_only=True)
class Category(Entity):
    name: str
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def natural_key(self) -> tuple[Any, ...]:
        return (lookup_key(self.name),)


@dataclass(slots=True, eq=False, kw_only=True)
class Product(Entity):
    name: str
    brand_id: int
    category_id: int
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def natural_key(self) -> tuple[Any, ...]:
        return (lookup_key(self.name), self.brand_id)


@dataclass(slots=True, eq=False, kw_only=True)
class PriceEntry(Entity):
    product_id: int
    store_id: int
    entry_date: date
    price: Decimal
    currency: str
    package_quantity: Decimal
    package_unit: UnitOfMeasure
    store_product_id: str | None = None
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def natural_key(self) -> tuple[Any, ...]:
        return (self.product_id, self.store_id, self.entry_date)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PriceEntry":
        return cls(
            id=row["id"],
            product_id=row["product_id"],
            store_id=row["store_id"],
            entry_date=row["entry_date"],
            price=Decimal(row["price"]),
            currency=row["currency"],
            package_quantity=Decimal(row["package_quantity"]),
            package_unit=UnitOfMeasure(row["package_unit"]),
            store_product_id=row["store_product_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass(slots=True, eq=False, kw_only=True)
class Discount(Entity):
    product_id: int
    store_id: int
    percentage: int
    from_date: date
    to_date: date
    recorded_at_date: date
    package_quantity: Decimal
    package_unit: UnitOfMeasure
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def natural_key(self) -> tuple[Any, ...]:
        return (self.product_id, self.store_id, self.from_date, self.package_quantity, self.package_unit)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Discount":
        return cls(
            id=row["id"],
            product_id=row["product_id"],
            store_id=row["store_id"],
            percentage=int(row["percentage"]),
            from_date=row["from_date"],
            to_date=row["to_date"],
            recorded_at_date=row["recorded_at_date"],
            package_quantity=Decimal(row["package_quantity"]),
            package_unit=UnitOfMeasure(row["package_unit"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass(slots=True)
class ProductPriceRow:
    line_number: int
    product_id: str
    product_name: str
    product_category: str
    brand: str
    package_quantity: Decimal
    package_unit: str
    price: Decimal
    currency: str


@dataclass(slots=True)
class DiscountRow:
    line_number: int
    product_id: str
    product_name: str
    brand: str
    package_quantity: Decimal
    package_unit: str
    product_category: str
    from_date: date
    to_date: date
    percentage: int
