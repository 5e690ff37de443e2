from .base import Base
from .company import Company, Project
from .transaction import Transaction
from .material import MaterialRequest, MaterialPurchase
from .expense_category import ExpenseCategory
from .audit import AuditLog

__all__ = [
    'Base', 'Company', 'Project', 'Transaction', 'MaterialRequest', 'MaterialPurchase',
    'ExpenseCategory', 'AuditLog',
]
