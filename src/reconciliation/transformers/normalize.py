"""Value normalization shared by the record transformers.

Pure functions, no I/O. Documents are Brazilian: month names come in
Portuguese (full or abbreviated, with or without accents) and numbers use
the pt-BR separators (1.234,56). English month names are accepted too.
"""

from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

MONTHS: dict[str, int] = {
    "JAN": 1, "JANEIRO": 1, "JANUARY": 1,
    "FEV": 2, "FEVEREIRO": 2, "FEB": 2, "FEBRUARY": 2,
    "MAR": 3, "MARCO": 3, "MARCH": 3,
    "ABR": 4, "ABRIL": 4, "APR": 4, "APRIL": 4,
    "MAI": 5, "MAIO": 5, "MAY": 5,
    "JUN": 6, "JUNHO": 6, "JUNE": 6,
    "JUL": 7, "JULHO": 7, "JULY": 7,
    "AGO": 8, "AGOSTO": 8, "AUG": 8, "AUGUST": 8,
    "SET": 9, "SETEMBRO": 9, "SEP": 9, "SEPT": 9, "SEPTEMBER": 9,
    "OUT": 10, "OUTUBRO": 10, "OCT": 10, "OCTOBER": 10,
    "NOV": 11, "NOVEMBRO": 11, "NOVEMBER": 11,
    "DEZ": 12, "DEZEMBRO": 12, "DEC": 12, "DECEMBER": 12,
}

_MONTH_TOKEN = re.compile(r"[A-Z]+")
_NUMERIC_NOISE = re.compile(r"[^\d,.\-]")
_PT_THOUSANDS = re.compile(r"-?[1-9]\d{0,2}(\.\d{3})+")
_BR_DATE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")


def fold_text(value: str | None) -> str:
    """Upper-case and strip accents ("Março" -> "MARCO")."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).upper().strip()


def clean_text(value: Any) -> str | None:
    """Stringify and strip. Empty values become None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def month_number(value: Any) -> int | None:
    """Resolve a month given as number, name, or abbreviation. None if unknown."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if 1 <= value <= 12 else None

    folded = fold_text(str(value))
    if folded.isdigit():
        number = int(folded)
        return number if 1 <= number <= 12 else None
    if folded in MONTHS:
        return MONTHS[folded]
    # "MAR/2024", "Março de 2024"
    for token in _MONTH_TOKEN.findall(folded):
        if token in MONTHS:
            return MONTHS[token]
    return None


def parse_decimal(value: Any) -> Decimal | None:
    """Parse a localized number. Returns None when nothing numeric is present.

    With both separators present, the right-most one is the decimal mark.
    A lone comma is a decimal mark; dot-grouped thousands ("1.500") follow
    the pt-BR convention.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    text = _NUMERIC_NOISE.sub("", str(value))
    if not text or not any(c.isdigit() for c in text):
        return None

    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        text = text.replace(".", "").replace(",", ".")
    elif _PT_THOUSANDS.fullmatch(text):
        text = text.replace(".", "")

    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def parse_date(value: Any) -> date | None:
    """Parse ISO (YYYY-MM-DD) or Brazilian (DD/MM/YYYY) dates. None if invalid."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    match = _BR_DATE.fullmatch(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None
    return None


def parse_int(value: Any) -> int | None:
    number = parse_decimal(value)
    if number is None:
        return None
    return int(number)
