"""Ingestion helpers."""

from __future__ import annotations

import pathlib

import yaml

UNITS_PATH = pathlib.Path(__file__).with_name("units.yml")


def load_unit_aliases(path: pathlib.Path = UNITS_PATH) -> dict[str, str]:
    """Map every lower-cased source spelling to its canonical unit code."""
    data = yaml.safe_load(path.read_text())
    aliases: dict[str, str] = {}
    for code, spellings in data.items():
        aliases[code.lower()] = code
        for spelling in spellings or []:
            aliases[str(spelling).strip().lower()] = code
    return aliases
