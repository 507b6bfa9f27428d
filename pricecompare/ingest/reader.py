"""Readers for `;`-delimited retailer extracts."""

from __future__ import annotations

import csv
import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from pathlib import Path
from typing import Callable, Iterator, Sequence, TypeVar

from pricecompare.errors import FileStructureError, RowDataError
from pricecompare.ingest.models import DiscountRow, ProductPriceRow
from pricecompare.utils.dates import parse_iso_date

logger = logging.getLogger(__name__)

PRODUCT_PRICE_HEADER = [
    "product_id",
    "product_name",
    "product_category",
    "brand",
    "package_quantity",
    "package_unit",
    "price",
    "currency",
]

DISCOUNT_HEADER = [
    "product_id",
    "product_name",
    "brand",
    "package_quantity",
    "package_unit",
    "product_category",
    "from_date",
    "to_date",
    "percentage_of_discount",
]

RowT = TypeVar("RowT")

# Scales of the package_quantity and price columns.
QUANTITY_STEP = Decimal("0.001")
PRICE_STEP = Decimal("0.01")


def read_product_price_rows(path: Path) -> list[ProductPriceRow]:
    rows = _read(path, PRODUCT_PRICE_HEADER, _parse_product_price_row)
    logger.info("Read %s product price rows from %s", len(rows), path)
    return rows


def read_discount_rows(path: Path) -> list[DiscountRow]:
    rows = _read(path, DISCOUNT_HEADER, _parse_discount_row)
    logger.info("Read %s discount rows from %s", len(rows), path)
    return rows


def _read(path: Path, expected_header: list[str], parse_row: Callable[[Sequence[str], int], RowT]) -> list[RowT]:
    rows: list[RowT] = []
    try:
        with path.open(newline="", encoding="utf-8-sig") as handle:
            records = _records(csv.reader(handle, delimiter=";", quotechar='"', strict=True))
            header = next(records, None)
            if header is None:
                logger.warning("File %s is empty", path)
                return rows
            line_number, fields = header
            _validate_header(fields, expected_header, path, line_number)
            for line_number, fields in records:
                try:
                    rows.append(parse_row(fields, line_number))
                except RowDataError as exc:
                    logger.warning("Skipping line %s in %s: %s", line_number, path, exc)
    except csv.Error as exc:
        raise FileStructureError(f"{path}: malformed CSV ({exc})") from exc
    except UnicodeDecodeError as exc:
        raise FileStructureError(f"{path}: not valid UTF-8 ({exc})") from exc
    return rows


def _records(reader) -> Iterator[tuple[int, list[str]]]:
    for record in reader:
        if not any(field.strip() for field in record):
            continue
        yield reader.line_num, record


def _validate_header(fields: Sequence[str], expected: list[str], path: Path, line_number: int) -> None:
    actual = [field.strip() for field in fields]
    if actual != expected:
        raise FileStructureError(
            f"{path}: invalid header at line {line_number}. Expected {expected}, got {actual}"
        )


def _parse_product_price_row(fields: Sequence[str], line_number: int) -> ProductPriceRow:
    _check_field_count(fields, len(PRODUCT_PRICE_HEADER))
    quantity = _parse_decimal(fields[4], "package_quantity", QUANTITY_STEP)
    price = _parse_decimal(fields[6], "price", PRICE_STEP)
    if quantity <= 0:
        raise RowDataError(f"package_quantity must be positive, got {quantity}")
    if price <= 0:
        raise RowDataError(f"price must be positive, got {price}")
    return ProductPriceRow(
        line_number=line_number,
        product_id=fields[0].strip(),
        product_name=_required(fields[1], "product_name"),
        product_category=_required(fields[2], "product_category"),
        brand=_required(fields[3], "brand"),
        package_quantity=quantity,
        package_unit=fields[5].strip(),
        price=price,
        currency=_required(fields[7], "currency").upper(),
    )


def _parse_discount_row(fields: Sequence[str], line_number: int) -> DiscountRow:
    _check_field_count(fields, len(DISCOUNT_HEADER))
    quantity = _parse_decimal(fields[3], "package_quantity", QUANTITY_STEP)
    if quantity <= 0:
        raise RowDataError(f"package_quantity must be positive, got {quantity}")
    from_date = _parse_date(fields[6], "from_date")
    to_date = _parse_date(fields[7], "to_date")
    if to_date < from_date:
        raise RowDataError(f"to_date {to_date} is before from_date {from_date}")
    percentage = _parse_int(fields[8], "percentage_of_discount")
    if not 1 <= percentage <= 100:
        raise RowDataError(f"percentage_of_discount must be within 1..100, got {percentage}")
    return DiscountRow(
        line_number=line_number,
        product_id=fields[0].strip(),
        product_name=_required(fields[1], "product_name"),
        brand=_required(fields[2], "brand"),
        package_quantity=quantity,
        package_unit=fields[4].strip(),
        product_category=fields[5].strip(),
        from_date=from_date,
        to_date=to_date,
        percentage=percentage,
    )


def _check_field_count(fields: Sequence[str], expected: int) -> None:
    if len(fields) != expected:
        raise RowDataError(f"expected {expected} fields, found {len(fields)}")


def _required(value: str, field: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise RowDataError(f"missing value for {field}")
    return stripped


def _parse_decimal(value: str, field: str, step: Decimal) -> Decimal:
    """Parse a `.` or `,` decimal rounded half-up to the column scale."""
    raw = _required(value, field).replace(",", ".")
    try:
        parsed = Decimal(raw)
        if parsed.is_finite():
            return parsed.quantize(step, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise RowDataError(f"invalid number {value!r} for {field}") from exc
    raise RowDataError(f"invalid number {value!r} for {field}")


def _parse_int(value: str, field: str) -> int:
    raw = _required(value, field)
    try:
        return int(raw)
    except ValueError as exc:
        raise RowDataError(f"invalid integer {value!r} for {field}") from exc


def _parse_date(value: str, field: str) -> date:
    raw = _required(value, field)
    try:
        return parse_iso_date(raw)
    except ValueError as exc:
        raise RowDataError(f"invalid date {value!r} for {field}, expected yyyy-MM-dd") from exc
