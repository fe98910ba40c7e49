"""Monetary amount and date normalization for Italian text"""
import re
from typing import List

from .models import ExtractedAmount, ExtractedDate

_GROUPED = r"[\d]{1,3}(?:[.\s][\d]{3})*(?:,[\d]{1,2})?"
_DOT_GROUPED = r"[\d]{1,3}(?:\.[\d]{3})*(?:,[\d]{1,2})?"

AMOUNT_PATTERNS = [
    # € 123.456,78 | €300.000 | € 300 000
    re.compile(r"€\s*(" + _GROUPED + r")"),
    # 123.456,78 €
    re.compile(r"(" + _DOT_GROUPED + r")\s*€"),
    # euro 123.456,78 | EUR 300.000
    re.compile(r"(?:euro|eur)\s+(" + _GROUPED + r")", re.IGNORECASE),
    # 123.456,78 euro
    re.compile(r"(" + _DOT_GROUPED + r")\s*(?:euro|eur)\b", re.IGNORECASE),
    # Bare dot-grouped figures such as 150.000 or 1.200.000
    re.compile(r"((?:\d{1,3}\.){1,4}\d{3})(?!\s*,\s*\d)"),
]

_NON_NUMERIC = re.compile(r"[^\d,.\-]")
_FLOAT_PREFIX = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)")

MONTHS_IT = {
    "gennaio": 1, "febbraio": 2, "marzo": 3, "aprile": 4,
    "maggio": 5, "giugno": 6, "luglio": 7, "agosto": 8,
    "settembre": 9, "ottobre": 10, "novembre": 11, "dicembre": 12,
}

DATE_NUMERIC = re.compile(r"(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})")
DATE_TEXTUAL = re.compile(
    r"(\d{1,2})\s+(" + "|".join(MONTHS_IT) + r")\s+(\d{4})",
    re.IGNORECASE,
)


def normalize_amount(raw: str) -> float:
    """
    Convert an Italian or English formatted amount to a float.

    "123.456,78" -> 123456.78, "123,456.78" -> 123456.78,
    "300.000" -> 300000, "300 000" -> 300000, "€ 1.500" -> 1500.

    Args:
        raw: Amount as found in the text, currency symbol allowed

    Returns:
        Parsed value, or 0.0 when nothing numeric can be read
    """
    cleaned = _NON_NUMERIC.sub("", raw)

    last_comma = cleaned.rfind(",")
    last_dot = cleaned.rfind(".")

    if last_comma > last_dot:
        # Italian: dots group thousands, comma is the decimal mark
        cleaned = cleaned.replace(".", "").replace(",", ".", 1)
    elif last_dot > last_comma:
        after_dot = cleaned[last_dot + 1:]
        if len(after_dot) == 3 and after_dot.isdigit():
            cleaned = cleaned.replace(".", "")
        else:
            cleaned = cleaned.replace(",", "")

    match = _FLOAT_PREFIX.match(cleaned)
    if not match:
        return 0.0
    return float(match.group(0))


def extract_amounts(text: str) -> List[ExtractedAmount]:
    """
    Find every monetary amount in a text, in order of appearance.

    Matches from different patterns that start within 3 characters of each
    other, overlap, or carry the same value within 20 characters are
    reported once.
    """
    found = []
    seen_starts = set()

    for pattern in AMOUNT_PATTERNS:
        for match in pattern.finditer(text):
            if match.start() in seen_starts:
                continue
            seen_starts.add(match.start())

            value = normalize_amount(match.group(1))
            if value > 0:
                found.append((match.start(), match.end(), match.group(0).strip(), value))

    found.sort(key=lambda item: item[0])

    kept = []
    for start, end, raw, value in found:
        duplicate = any(
            abs(k_start - start) < 3
            or (start < k_end and k_start < end)
            or (k_value == value and abs(k_start - start) < 20)
            for k_start, k_end, _, k_value in kept
        )
        if not duplicate:
            kept.append((start, end, raw, value))

    return [ExtractedAmount(raw=raw, value=value, start_index=start)
            for start, _, raw, value in kept]


def extract_dates(text: str) -> List[ExtractedDate]:
    """Find numeric (dd/mm/yyyy) and textual ("15 marzo 2010") dates, sorted by position."""
    dates = []

    for match in DATE_NUMERIC.finditer(text):
        day, month, year = match.group(1), int(match.group(2)), match.group(3)
        if 1 <= month <= 12:
            dates.append(ExtractedDate(
                raw=match.group(0),
                normalized=f"{year}-{month:02d}-{int(day):02d}",
                start_index=match.start(),
            ))

    for match in DATE_TEXTUAL.finditer(text):
        month = MONTHS_IT.get(match.group(2).lower())
        if month:
            dates.append(ExtractedDate(
                raw=match.group(0),
                normalized=f"{match.group(3)}-{month:02d}-{int(match.group(1)):02d}",
                start_index=match.start(),
            ))

    dates.sort(key=lambda d: d.start_index)
    return dates


def format_amount(value: float) -> str:
    """Italian currency formatting: 185000 -> "€ 185.000,00" """
    grouped = f"{value:,.2f}"
    return "€ " + grouped.replace(",", "_").replace(".", ",").replace("_", ".")
