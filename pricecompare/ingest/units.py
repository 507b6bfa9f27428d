"""Units of measure for package quantities."""

from __future__ import annotations

import logging
from enum import Enum
from functools import lru_cache

from pricecompare.ingest import load_unit_aliases

logger = logging.getLogger(__name__)


class UnitOfMeasure(str, Enum):
    L = "L"
    ML = "ML"
    KG = "KG"
    G = "G"
    BUCATA = "BUCATA"
    ROLE = "ROLE"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_string(cls, value: str | None) -> "UnitOfMeasure":
        if value is None or not value.strip():
            return cls.UNKNOWN
        code = _aliases().get(value.strip().lower())
        return cls(code) if code else cls.UNKNOWN


class BaseUnit(str, Enum):
    KG = "KG"
    L = "L"


@lru_cache(maxsize=1)
def _aliases() -> dict[str, str]:
    return load_unit_aliases()


def parse_unit(value: str | None, *, context: str) -> UnitOfMeasure:
    """Parse a unit, warning when a non-blank spelling is not recognised."""
    unit = UnitOfMeasure.from_string(value)
    if unit is UnitOfMeasure.UNKNOWN and value and value.strip().lower() != "unknown":
        logger.warning("%s: unknown package unit %r, storing as UNKNOWN", context, value)
    return unit
