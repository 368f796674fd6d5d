"""Tests for the CNPJ decoder.

Tests cover:
- Check digit validation
- Normalization and canonical formatting
"""

from __future__ import annotations

from src.decoders.cnpj import cnpj_digits, format_cnpj, validate_cnpj_checksum


class TestCnpjChecksum:
    """Test CNPJ check digit validation."""

    def test_valid(self) -> None:
        assert validate_cnpj_checksum("11.222.333/0001-81") is True

    def test_valid_with_zero_root(self) -> None:
        assert validate_cnpj_checksum("00.000.000/0001-91") is True

    def test_wrong_first_digit(self) -> None:
        assert validate_cnpj_checksum("11.222.333/0001-71") is False

    def test_wrong_second_digit(self) -> None:
        assert validate_cnpj_checksum("11.222.333/0001-82") is False

    def test_repeated_digits_rejected(self) -> None:
        assert validate_cnpj_checksum("11.111.111/1111-11") is False

    def test_wrong_length(self) -> None:
        assert validate_cnpj_checksum("1122233300018") is False


class TestCnpjNormalization:
    def test_digits(self) -> None:
        assert cnpj_digits("11.222.333/0001-81") == "11222333000181"

    def test_digits_none(self) -> None:
        assert cnpj_digits(None) == ""

    def test_format(self) -> None:
        assert format_cnpj("11222333000181") == "11.222.333/0001-81"

    def test_format_leaves_invalid_length(self) -> None:
        assert format_cnpj("123") == "123"
