"""Brazilian CNPJ (company tax id) decoder.

Pure Python, no I/O. Normalizes the 14-digit CNPJ and validates its two
check digits.

CNPJ format: AA.AAA.AAA/BBBB-CC
  - AAAAAAAA: company root
  - BBBB:     branch number (0001 = head office)
  - CC:       check digits (mod 11)

Reference: Receita Federal, IN RFB 2.119/2022.
"""

from __future__ import annotations

import re

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_NON_DIGITS = re.compile(r"\D")

FIRST_WEIGHTS: tuple[int, ...] = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
SECOND_WEIGHTS: tuple[int, ...] = (6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def cnpj_digits(cnpj: str) -> str:
    """Strip punctuation, keeping only digits."""
    return _NON_DIGITS.sub("", cnpj or "")


def validate_cnpj_checksum(cnpj: str) -> bool:
    """Validate both check digits of a CNPJ."""
    digits = cnpj_digits(cnpj)
    if len(digits) != 14 or len(set(digits)) == 1:
        return False
    numbers = [int(d) for d in digits]
    first = _check_digit(numbers[:12], FIRST_WEIGHTS)
    second = _check_digit([*numbers[:12], first], SECOND_WEIGHTS)
    return numbers[12] == first and numbers[13] == second


def format_cnpj(cnpj: str) -> str:
    """Canonical punctuated form (AA.AAA.AAA/BBBB-CC). Returns input unchanged if not 14 digits."""
    digits = cnpj_digits(cnpj)
    if len(digits) != 14:
        return cnpj
    return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"


def _check_digit(numbers: list[int], weights: tuple[int, ...]) -> int:
    remainder = sum(n * w for n, w in zip(numbers, weights)) % 11
    return 0 if remainder < 2 else 11 - remainder
