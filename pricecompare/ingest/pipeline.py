"""CSV ingestion: discovery, per-file transactions and archival."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from pricecompare.db.session import transaction_scope
from pricecompare.errors import CsvProcessingError, FileIngestionError, RowDataError
from pricecompare.ingest import reader as csv_reader
from pricecompare.ingest.archive import move_to_processed
from pricecompare.ingest.catalog import CatalogResolver
from pricecompare.ingest.discounts import upsert_discount
from pricecompare.ingest.filenames import CsvFileType, ParsedCsvInfo, classify_filename
from pricecompare.ingest.models import DiscountRow, ProductPriceRow, Store, UpsertAction
from pricecompare.ingest.prices import upsert_price_entry
from pricecompare.ingest.units import parse_unit

logger = logging.getLogger(__name__)

# Price files create the products that same-run discount files refer to.
_TYPE_ORDER = {CsvFileType.PRODUCT_PRICE: 0, CsvFileType.DISCOUNT: 1}


class FileState(str, Enum):
    DISCOVERED = "discovered"
    PARSED = "parsed"
    COMMITTED = "committed"
    ARCHIVED = "archived"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(slots=True)
class FileOutcome:
    path: Path
    file_type: CsvFileType
    state: FileState = FileState.DISCOVERED
    rows_read: int = 0
    rows_applied: int = 0
    rows_skipped: int = 0
    actions: dict[UpsertAction, int] = field(default_factory=dict)
    archived_to: Path | None = None
    error: str | None = None


@dataclass(slots=True)
class IngestionReport:
    files: list[FileOutcome] = field(default_factory=list)

    def by_state(self, state: FileState) -> list[FileOutcome]:
        return [outcome for outcome in self.files if outcome.state is state]

    @property
    def failed(self) -> list[FileOutcome]:
        return self.by_state(FileState.FAILED)


@dataclass(slots=True, frozen=True)
class PendingFile:
    path: Path
    info: ParsedCsvInfo


class CsvIngestor:
    """Ingest retailer extracts from ``input_dir``, one transaction per file."""

    def __init__(
        self,
        engine: Engine,
        *,
        input_dir: Path,
        processed_dir: Path | None = None,
        reader=csv_reader,
        archiver: Callable[[Path, Path], Path] = move_to_processed,
    ) -> None:
        self.engine = engine
        self.input_dir = Path(input_dir)
        self.processed_dir = Path(processed_dir) if processed_dir else None
        self.reader = reader
        self.archiver = archiver

    def discover(self) -> list[PendingFile]:
        if not self.input_dir.is_dir():
            logger.warning("Input directory %s does not exist", self.input_dir)
            return []
        found = [
            PendingFile(path, classify_filename(path.name))
            for path in self.input_dir.iterdir()
            if path.is_file() and path.suffix.lower() == ".csv"
        ]
        known = [item for item in found if item.info.file_type is not CsvFileType.UNKNOWN]
        unknown = [item for item in found if item.info.file_type is CsvFileType.UNKNOWN]
        known.sort(key=lambda item: (_TYPE_ORDER[item.info.file_type], item.info.date, item.info.store_name.lower(), item.path.name))
        unknown.sort(key=lambda item: item.path.name)
        return known + unknown

    def ingest_pending(self) -> IngestionReport:
        pending = self.discover()
        logger.info("Found %s CSV files in %s", len(pending), self.input_dir)
        report = IngestionReport()
        for item in pending:
            report.files.append(self._ingest(item))
        logger.info(
            "Ingestion finished: %s archived, %s committed, %s failed, %s skipped",
            len(report.by_state(FileState.ARCHIVED)),
            len(report.by_state(FileState.COMMITTED)),
            len(report.failed),
            len(report.by_state(FileState.SKIPPED)),
        )
        return report

    def ingest_file(self, path: Path) -> FileOutcome:
        path = Path(path)
        return self._ingest(PendingFile(path, classify_filename(path.name)))

    def _ingest(self, item: PendingFile) -> FileOutcome:
        outcome = FileOutcome(path=item.path, file_type=item.info.file_type)
        if item.info.file_type is CsvFileType.UNKNOWN:
            logger.warning("Skipping %s: unrecognised filename", item.path.name)
            outcome.state = FileState.SKIPPED
            return outcome

        logger.info("Processing %s (%s, store=%s, date=%s)", item.path.name, item.info.file_type.value, item.info.store_name, item.info.date)
        try:
            rows = self._read(item)
            outcome.state = FileState.PARSED
            outcome.rows_read = len(rows)
            with transaction_scope(self.engine) as conn:
                self._apply(conn, item, rows, outcome)
            outcome.state = FileState.COMMITTED
        except (CsvProcessingError, OSError, SQLAlchemyError) as exc:
            logger.exception("Failed to ingest %s; transaction rolled back, file retained", item.path.name)
            outcome.state = FileState.FAILED
            outcome.error = str(exc)
            outcome.rows_applied = 0
            outcome.actions = {}
            return outcome

        logger.info(
            "Committed %s: %s rows applied, %s skipped",
            item.path.name,
            outcome.rows_applied,
            outcome.rows_skipped,
        )
        self._archive(outcome)
        return outcome

    def _read(self, item: PendingFile) -> list[ProductPriceRow] | list[DiscountRow]:
        if item.info.file_type is CsvFileType.PRODUCT_PRICE:
            return self.reader.read_product_price_rows(item.path)
        return self.reader.read_discount_rows(item.path)

    def _apply(self, conn: Connection, item: PendingFile, rows: list, outcome: FileOutcome) -> None:
        catalog = CatalogResolver(conn)
        store = catalog.resolve_store(item.info.store_name)
        apply_row = _apply_price_row if item.info.file_type is CsvFileType.PRODUCT_PRICE else _apply_discount_row
        for row in rows:
            try:
                with conn.begin_nested():
                    action = apply_row(catalog, store, item.info, row)
            except RowDataError as exc:
                logger.warning("Skipping line %s in %s: %s", row.line_number, item.path.name, exc)
                outcome.rows_skipped += 1
                continue
            except Exception as exc:
                raise FileIngestionError(f"{item.path.name} line {row.line_number}: {exc}") from exc
            outcome.rows_applied += 1
            outcome.actions[action] = outcome.actions.get(action, 0) + 1

    def _archive(self, outcome: FileOutcome) -> None:
        if self.processed_dir is None:
            return
        try:
            outcome.archived_to = self.archiver(outcome.path, self.processed_dir)
        except OSError:
            logger.exception("Could not archive %s; it will be re-ingested on the next run", outcome.path.name)
            return
        outcome.state = FileState.ARCHIVED


def _apply_price_row(catalog: CatalogResolver, store: Store, info: ParsedCsvInfo, row: ProductPriceRow) -> UpsertAction:
    brand = catalog.resolve_brand(row.brand)
    category = catalog.resolve_category(row.product_category)
    product = catalog.resolve_product(row.product_name, brand, category)
    _, action = upsert_price_entry(
        catalog.conn,
        product=product,
        store=store,
        entry_date=info.date,
        store_product_id=row.product_id or None,
        price=row.price,
        currency=row.currency,
        package_quantity=row.package_quantity,
        package_unit=parse_unit(row.package_unit, context=f"line {row.line_number}"),
    )
    return action


def _apply_discount_row(catalog: CatalogResolver, store: Store, info: ParsedCsvInfo, row: DiscountRow) -> UpsertAction:
    brand = catalog.find_brand(row.brand)
    if brand is None:
        raise RowDataError(f"unknown brand {row.brand!r}")
    product = catalog.find_product(row.product_name, brand)
    if product is None:
        raise RowDataError(f"unknown product {row.product_name!r} ({brand.name})")
    _, action = upsert_discount(
        catalog.conn,
        product=product,
        store=store,
        package_quantity=row.package_quantity,
        package_unit=parse_unit(row.package_unit, context=f"line {row.line_number}"),
        percentage=row.percentage,
        from_date=row.from_date,
        to_date=row.to_date,
        recorded_at_date=info.date,
    )
    return action
