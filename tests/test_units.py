import logging

from pricecompare.ingest import load_unit_aliases
from pricecompare.ingest.units import UnitOfMeasure, parse_unit


def test_alias_table_covers_source_spellings():
    aliases = load_unit_aliases()
    assert aliases["litri"] == "L"
    assert aliases["kg"] == "KG"
    assert aliases["rola"] == "ROLE"


def test_from_string_is_case_insensitive():
    assert UnitOfMeasure.from_string(" L ") is UnitOfMeasure.L
    assert UnitOfMeasure.from_string("Grame") is UnitOfMeasure.G
    assert UnitOfMeasure.from_string("buc") is UnitOfMeasure.BUCATA
    assert UnitOfMeasure.from_string("role") is UnitOfMeasure.ROLE
    assert UnitOfMeasure.from_string("") is UnitOfMeasure.UNKNOWN
    assert UnitOfMeasure.from_string(None) is UnitOfMeasure.UNKNOWN


def test_parse_unit_warns_on_unknown_spelling(caplog):
    with caplog.at_level(logging.WARNING):
        assert parse_unit("pachet", context="line 3") is UnitOfMeasure.UNKNOWN
    assert "pachet" in caplog.text
    caplog.clear()
    with caplog.at_level(logging.WARNING):
        assert parse_unit("unknown", context="line 4") is UnitOfMeasure.UNKNOWN
    assert caplog.text == ""
