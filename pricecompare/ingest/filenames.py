"""Classification of retailer extract filenames.

Expected names:

* product prices: ``storename_yyyy-MM-dd.csv`` (e.g. ``lidl_2025-05-08.csv``)
* discounts: ``storename_discounts_yyyy-MM-dd.csv`` (e.g. ``lidl_discounts_2025-05-08.csv``)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from enum import Enum

from pricecompare.utils.dates import parse_iso_date

logger = logging.getLogger(__name__)

PRODUCT_PRICE_RE = re.compile(r"^([A-Za-z0-9]+)_(\d{4}-\d{2}-\d{2})\.csv$")
DISCOUNT_RE = re.compile(r"^([A-Za-z0-9]+)_discounts_(\d{4}-\d{2}-\d{2})\.csv$")


class CsvFileType(str, Enum):
    PRODUCT_PRICE = "product_price"
    DISCOUNT = "discount"
    UNKNOWN = "unknown"


@dataclass(slots=True, frozen=True)
class ParsedCsvInfo:
    file_type: CsvFileType
    store_name: str | None
    date: date | None


UNKNOWN_FILE = ParsedCsvInfo(CsvFileType.UNKNOWN, None, None)


def classify_filename(filename: str | None) -> ParsedCsvInfo:
    if not filename or not filename.strip():
        logger.warning("Attempted to classify an empty filename")
        return UNKNOWN_FILE
    for pattern, file_type in ((PRODUCT_PRICE_RE, CsvFileType.PRODUCT_PRICE), (DISCOUNT_RE, CsvFileType.DISCOUNT)):
        match = pattern.match(filename)
        if not match:
            continue
        store_name, date_str = match.groups()
        try:
            file_date = parse_iso_date(date_str)
        except ValueError:
            logger.warning("Invalid date %r in filename %s", date_str, filename)
            return ParsedCsvInfo(CsvFileType.UNKNOWN, store_name, None)
        return ParsedCsvInfo(file_type, store_name, file_date)
    logger.warning("Filename %s did not match any known CSV pattern", filename)
    return UNKNOWN_FILE
