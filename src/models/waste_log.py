"""WasteLog model: tenant-scoped waste manifest entries."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TenantMixin, TimestampMixin


class WasteLog(TenantMixin, TimestampMixin, Base):
    """One waste collection, keyed by its manifest (MTR) number."""

    __tablename__ = "waste_logs"
    __table_args__ = (UniqueConstraint("company_id", "mtr_number", name="uq_waste_logs_company_mtr"),)

    mtr_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    waste_description: Mapped[str] = mapped_column(Text, nullable=False)
    waste_class: Mapped[str] = mapped_column(String(10), nullable=False, comment="WasteClass enum value")
    collection_date: Mapped[date] = mapped_column(Date, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    destination_name: Mapped[str | None] = mapped_column(String(255))
    cost: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    source_preview_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)

    def __repr__(self) -> str:
        return f"<WasteLog mtr={self.mtr_number} class={self.waste_class} qty={self.quantity}{self.unit}>"
