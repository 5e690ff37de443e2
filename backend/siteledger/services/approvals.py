from __future__ import annotations
"""One review queue over every approvable entity.

Pending transactions and pending material requests are merged into a single
oldest-first queue. ``approve``/``reject`` take an ``item_type`` and dispatch
to the owning component, so reviewers use one contract for all of them.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from siteledger.errors import UnknownItemTypeError
from siteledger.models.material import MaterialRequest
from siteledger.models.transaction import Transaction
from siteledger.services.ledger import TransactionLedger
from siteledger.services.materials import MaterialWorkflow
from siteledger.services.policy import Actor
from siteledger.services.uow import read_session
from siteledger.utils.validation import validate_status

ITEM_TRANSACTION = 'transaction'
ITEM_MATERIAL_REQUEST = 'material_request'
ITEM_TYPES = (ITEM_TRANSACTION, ITEM_MATERIAL_REQUEST)

# Stable order between the two sources when created_at ties
_TYPE_RANK = {ITEM_TRANSACTION: 0, ITEM_MATERIAL_REQUEST: 1}


@dataclass(frozen=True)
class PendingItem:
    item_type: str
    item: Any

    @property
    def created_at(self) -> datetime:
        ts = self.item.created_at
        if ts is not None and ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts

    def sort_key(self):
        return (self.created_at, _TYPE_RANK[self.item_type], self.item.id)


@dataclass(frozen=True)
class PendingFilter:
    project_id: Optional[int] = None
    item_type: Optional[str] = None
    kind: Optional[str] = None


class ApprovalOrchestrator:
    def __init__(self, session_factory: Callable[[], Session], ledger: TransactionLedger, materials: MaterialWorkflow):
        self._session_factory = session_factory
        self.ledger = ledger
        self.materials = materials
        self._approvers: Dict[str, Callable[[int, Actor], Any]] = {
            ITEM_TRANSACTION: ledger.approve,
            ITEM_MATERIAL_REQUEST: materials.approve_request,
        }
        self._rejecters: Dict[str, Callable[[int, Actor, Any], Any]] = {
            ITEM_TRANSACTION: ledger.reject,
            ITEM_MATERIAL_REQUEST: materials.reject_request,
        }

    def _check_type(self, item_type: str) -> str:
        if item_type not in ITEM_TYPES:
            raise UnknownItemTypeError(f'Unknown approval item type {item_type!r}', item_type=item_type)
        return item_type

    def list_pending(self, filters: Optional[PendingFilter] = None) -> List[PendingItem]:
        filters = filters or PendingFilter()
        wanted = [self._check_type(filters.item_type)] if filters.item_type else list(ITEM_TYPES)
        if filters.kind:
            validate_status(filters.kind, Transaction.ALL_KINDS, 'kind')
        items: List[PendingItem] = []
        with read_session(self._session_factory) as session:
            if ITEM_TRANSACTION in wanted:
                stmt = select(Transaction).where(Transaction.approval_status == Transaction.STATUS_PENDING)
                if filters.project_id is not None:
                    stmt = stmt.where(Transaction.project_id == filters.project_id)
                if filters.kind:
                    stmt = stmt.where(Transaction.kind == filters.kind)
                items.extend(PendingItem(ITEM_TRANSACTION, tx) for tx in session.execute(stmt).scalars())
            if ITEM_MATERIAL_REQUEST in wanted:
                stmt = select(MaterialRequest).where(MaterialRequest.status == MaterialRequest.STATUS_PENDING)
                if filters.project_id is not None:
                    stmt = stmt.where(MaterialRequest.project_id == filters.project_id)
                items.extend(PendingItem(ITEM_MATERIAL_REQUEST, req) for req in session.execute(stmt).scalars())
        items.sort(key=PendingItem.sort_key)
        return items

    def approve(self, item_type: str, item_id: int, actor: Actor):
        return self._approvers[self._check_type(item_type)](item_id, actor)

    def reject(self, item_type: str, item_id: int, actor: Actor, reason: Any):
        return self._rejecters[self._check_type(item_type)](item_id, actor, reason)

__all__ = ['ApprovalOrchestrator', 'PendingItem', 'PendingFilter', 'ITEM_TYPES', 'ITEM_TRANSACTION', 'ITEM_MATERIAL_REQUEST']
