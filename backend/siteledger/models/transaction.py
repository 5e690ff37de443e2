from __future__ import annotations
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Date, DateTime, ForeignKey, Index

from .base import Base, utcnow
from siteledger.services.money import from_minor_units


class Transaction(Base):
    __tablename__ = 'transactions'
    KIND_PAYMENT = 'payment'
    KIND_EXPENSE = 'expense'
    ALL_KINDS = (KIND_PAYMENT, KIND_EXPENSE)
    # Approval lifecycle: pending -> approved -> paid (terminal) | pending -> rejected (terminal)
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_PAID = 'paid'
    ALL_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED, STATUS_PAID)
    # Statuses whose amounts count as realised money in derived views
    COUNTED_STATUSES = (STATUS_APPROVED, STATUS_PAID)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    project_id: Mapped[int] = mapped_column(ForeignKey('projects.id'), nullable=False, index=True)
    date: Mapped[object] = mapped_column(Date, nullable=False, index=True)
    category: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    approval_status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    approved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[object] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[object] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (Index('ix_transactions_status_created', 'approval_status', 'created_at'),)

    @property
    def amount(self) -> Decimal:
        return from_minor_units(self.amount_cents)

    @property
    def is_counted(self) -> bool:
        return self.approval_status in self.COUNTED_STATUSES

__all__ = ['Transaction']
