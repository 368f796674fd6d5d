"""Supplier model: tenant-scoped supplier registry entries."""

from __future__ import annotations

import uuid

from sqlalchemy import String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TenantMixin, TimestampMixin


class Supplier(TenantMixin, TimestampMixin, Base):
    """A supplier, keyed by CNPJ digits (or folded name when no CNPJ is known)."""

    __tablename__ = "suppliers"
    __table_args__ = (UniqueConstraint("company_id", "registration_key", name="uq_suppliers_company_key"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    cnpj: Mapped[str | None] = mapped_column(String(20))
    registration_key: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    contact_person: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(50))
    address: Mapped[str | None] = mapped_column(Text)
    supplier_type: Mapped[str | None] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    source_preview_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)

    def __repr__(self) -> str:
        return f"<Supplier name={self.name} cnpj={self.cnpj}>"
