"""Tests for amount and date normalization."""
import pytest

from perizia_extractor.normalizers import (
    extract_amounts,
    extract_dates,
    format_amount,
    normalize_amount,
)


@pytest.mark.parametrize("raw, expected", [
    ("€ 123.456,78", 123456.78),
    ("123.456,78", 123456.78),
    ("123,456.78", 123456.78),
    ("300.000", 300000.0),
    ("300 000", 300000.0),
    ("5000,50", 5000.5),
    ("€ 1.500", 1500.0),
    ("12.5", 12.5),
])
def test_normalize_amount_formats(raw, expected):
    assert normalize_amount(raw) == pytest.approx(expected)


def test_normalize_amount_without_digits():
    assert normalize_amount("euro") == 0.0
    assert normalize_amount("") == 0.0


def test_extract_amounts_euro_prefix_and_suffix():
    amounts = extract_amounts("Totale € 3.450,00 oltre a 1.200,00 euro di arretrati.")
    assert [a.value for a in amounts] == [3450.0, 1200.0]
    assert amounts[0].raw == "€ 3.450,00"
    assert amounts[0].start_index < amounts[1].start_index


def test_extract_amounts_bare_dot_grouped():
    amounts = extract_amounts("Valore complessivo 300.000 arrotondato.")
    assert [a.value for a in amounts] == [300000.0]


def test_extract_amounts_reports_overlapping_matches_once():
    # Matched by both the prefix and the suffix patterns
    amounts = extract_amounts("€ 1.000,00 €")
    assert len(amounts) == 1
    assert amounts[0].value == 1000.0


def test_extract_amounts_ignores_zero_and_plain_text():
    assert extract_amounts("€ 0,00") == []
    assert extract_amounts("nessun importo indicato") == []


def test_extract_dates_numeric_and_textual():
    dates = extract_dates("Atto del 15 marzo 2010, trascritto il 02/04/2010.")
    assert [d.normalized for d in dates] == ["2010-03-15", "2010-04-02"]
    assert dates[0].raw == "15 marzo 2010"


def test_extract_dates_rejects_invalid_month():
    assert extract_dates("riferimento 15/13/2010") == []


def test_format_amount_italian():
    assert format_amount(185000) == "€ 185.000,00"
    assert format_amount(3450.5) == "€ 3.450,50"
