from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, ForeignKey, DateTime

from .base import Base, utcnow


class Company(Base):
    __tablename__ = 'companies'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    projects = relationship('Project', back_populates='company')
    updated_at: Mapped[object] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Project(Base):
    __tablename__ = 'projects'
    STATUS_PLANNING = 'planning'
    STATUS_IN_PROGRESS = 'in-progress'
    STATUS_ON_HOLD = 'on-hold'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    ALL_STATUSES = (STATUS_PLANNING, STATUS_IN_PROGRESS, STATUS_ON_HOLD, STATUS_COMPLETED, STATUS_CANCELLED)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    company_id: Mapped[int] = mapped_column(ForeignKey('companies.id'), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_PLANNING)
    budget_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    company = relationship('Company', back_populates='projects')
    updated_at: Mapped[object] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

__all__ = ['Company', 'Project']
