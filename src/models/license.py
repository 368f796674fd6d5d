"""License and LicenseCondition models: environmental operating licenses."""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import Date, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TenantMixin, TimestampMixin


class License(TenantMixin, TimestampMixin, Base):
    """An environmental license, keyed by its license number."""

    __tablename__ = "licenses"
    __table_args__ = (UniqueConstraint("company_id", "license_number", name="uq_licenses_company_number"),)

    license_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    issuing_agency: Mapped[str | None] = mapped_column(String(255))
    issue_date: Mapped[date | None] = mapped_column(Date)
    expiration_date: Mapped[date | None] = mapped_column(Date)
    company_name: Mapped[str | None] = mapped_column(String(255))
    cnpj: Mapped[str | None] = mapped_column(String(20))
    address: Mapped[str | None] = mapped_column(Text)
    activity_description: Mapped[str | None] = mapped_column(Text)
    company_size: Mapped[str | None] = mapped_column(String(20))
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    source_preview_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)

    conditions: Mapped[list[LicenseCondition]] = relationship(
        "LicenseCondition", back_populates="license", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<License number={self.license_number} agency={self.issuing_agency}>"


class LicenseCondition(TimestampMixin, Base):
    """A single condition attached to a license."""

    __tablename__ = "license_conditions"

    license_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("licenses.id"), nullable=False, index=True
    )
    code: Mapped[str | None] = mapped_column(String(50))
    section_title: Mapped[str | None] = mapped_column(String(255))
    text: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    deadline_days: Mapped[int | None] = mapped_column(Integer)
    law_refs: Mapped[list[str] | None] = mapped_column(JSONB)
    source_snippet: Mapped[str | None] = mapped_column(Text)

    license: Mapped[License] = relationship("License", back_populates="conditions")
