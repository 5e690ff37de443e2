from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String

from .base import Base

# Bucket for uncategorized expenses and categories not registered below
OTHER_CATEGORY = 'other'
MATERIALS_CATEGORY = 'materials'


class ExpenseCategory(Base):
    __tablename__ = 'expense_categories'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)

__all__ = ['ExpenseCategory', 'OTHER_CATEGORY', 'MATERIALS_CATEGORY']
