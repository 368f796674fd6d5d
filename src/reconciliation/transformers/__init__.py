"""Transformer registry: maps DestinationTable to its record transformer."""

from __future__ import annotations

from src.models.enums import DestinationTable
from src.reconciliation.transformers import license, supplier, waste
from src.reconciliation.transformers.base import Transformer

TRANSFORMERS: dict[DestinationTable, Transformer] = {
    DestinationTable.WASTE_LOGS: waste.TRANSFORMER,
    DestinationTable.SUPPLIERS: supplier.TRANSFORMER,
    DestinationTable.LICENSES: license.TRANSFORMER,
}

SUPPORTED_TABLES: set[DestinationTable] = set(TRANSFORMERS.keys())
