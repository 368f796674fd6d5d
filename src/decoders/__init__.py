"""Deterministic data decoders: CNPJ normalization and checksum."""

from src.decoders.cnpj import cnpj_digits, format_cnpj, validate_cnpj_checksum

__all__ = ["cnpj_digits", "format_cnpj", "validate_cnpj_checksum"]
