from __future__ import annotations
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Date, DateTime, ForeignKey, Numeric, Text

from .base import Base, utcnow
from siteledger.services.money import from_minor_units


class MaterialRequest(Base):
    __tablename__ = 'material_requests'
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_PURCHASED = 'purchased'
    ALL_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED, STATUS_PURCHASED)
    URGENCY_LOW = 'low'
    URGENCY_MEDIUM = 'medium'
    URGENCY_HIGH = 'high'
    ALL_URGENCIES = (URGENCY_LOW, URGENCY_MEDIUM, URGENCY_HIGH)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey('projects.id'), nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    part_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_cost_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    urgency: Mapped[str] = mapped_column(String(16), nullable=False, default=URGENCY_MEDIUM)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    requested_by: Mapped[int] = mapped_column(Integer, nullable=False)
    approved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rejected_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[object] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[object] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def estimated_cost(self) -> Optional[Decimal]:
        if self.estimated_cost_cents is None:
            return None
        return from_minor_units(self.estimated_cost_cents)


class MaterialPurchase(Base):
    __tablename__ = 'material_purchases'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey('projects.id'), nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    part_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    hsn: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 4, asdecimal=True), nullable=False)
    tax_rate_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2, asdecimal=True), nullable=False, default=Decimal('0'))
    # Derived from quantity/unit_price/tax_rate_percent; written only by the workflow
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    vendor: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    invoice_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    purchase_date: Mapped[object] = mapped_column(Date, nullable=False)
    request_id: Mapped[Optional[int]] = mapped_column(ForeignKey('material_requests.id'), nullable=True, index=True)
    expense_id: Mapped[Optional[int]] = mapped_column(ForeignKey('transactions.id'), nullable=True, unique=True)
    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[object] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[object] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def total_amount(self) -> Decimal:
        return from_minor_units(self.total_cents)

__all__ = ['MaterialRequest', 'MaterialPurchase']
