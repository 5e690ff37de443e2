from __future__ import annotations
"""Transaction ledger: the canonical record of payments and expenses.

Every mutation runs under the record's logical lock and inside one unit of
work (row update + audit entry commit together). ``LedgerMutated`` is
published only after the commit succeeds.

Approval lifecycle::

    pending -> approved -> paid
    pending -> rejected

Rejected and paid are terminal; nothing moves backwards. Only pending records
may be edited or deleted. Anything else is an audit trail.
"""
import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from siteledger.errors import InvalidInputError, NotFoundError, ImmutableStateError
from siteledger.models.transaction import Transaction
from siteledger.models.material import MaterialPurchase
from siteledger.services.audit import add_audit, diff
from siteledger.services.events import EventBus, LedgerMutated
from siteledger.services.locks import EntityLocks
from siteledger.services.money import to_decimal, to_minor_units
from siteledger.services.policy import Actor
from siteledger.services.projects import ProjectLookup
from siteledger.services.uow import unit_of_work, read_session
from siteledger.utils.fsm import TransitionValidator
from siteledger.utils.validation import validate_status, require_text, optional_text, parse_date, parse_int

logger = logging.getLogger(__name__)

TX_FSM = TransitionValidator({
    Transaction.STATUS_PENDING: {Transaction.STATUS_APPROVED, Transaction.STATUS_REJECTED},
    Transaction.STATUS_APPROVED: {Transaction.STATUS_PAID},
    Transaction.STATUS_REJECTED: set(),
    Transaction.STATUS_PAID: set(),
}, field_name='approval status', entity='Transaction')

EDITABLE_FIELDS = ('amount', 'description', 'category', 'date', 'project_id')
AUDIT_FIELDS = ('amount_cents', 'description', 'category', 'date', 'project_id', 'approval_status')


def parse_amount_cents(value: Any) -> int:
    amount = to_decimal(value, 'amount')
    if amount <= 0:
        raise InvalidInputError('amount must be greater than zero')
    return to_minor_units(amount)


def _snapshot(tx: Transaction) -> Dict[str, Any]:
    return {
        'amount_cents': tx.amount_cents,
        'description': tx.description,
        'category': tx.category,
        'date': tx.date.isoformat() if tx.date else None,
        'project_id': tx.project_id,
        'approval_status': tx.approval_status,
    }


class TransactionLedger:
    def __init__(self, session_factory: Callable[[], Session], projects: ProjectLookup, events: EventBus, locks: EntityLocks):
        self._session_factory = session_factory
        self.projects = projects
        self.events = events
        self.locks = locks

    # ---------- Creation ---------- #

    def prepare(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Validate a creation payload; returns column values for ``insert``."""
        kind = validate_status(data.get('kind'), Transaction.ALL_KINDS, 'kind')
        if data.get('project_id') is None:
            raise InvalidInputError('project_id required')
        project_id = parse_int(data.get('project_id'), 'project_id')
        fields = {
            'kind': kind,
            'amount_cents': parse_amount_cents(data.get('amount')),
            'project_id': project_id,
            'date': parse_date(data.get('date'), 'date'),
            'description': optional_text(data.get('description')),
            # Payments never carry a category
            'category': optional_text(data.get('category')) if kind == Transaction.KIND_EXPENSE else None,
        }
        self.ensure_project(project_id)
        return fields

    def ensure_project(self, project_id: int) -> None:
        if not self.projects.exists(project_id):
            raise NotFoundError('Project', project_id)

    def insert(self, session: Session, fields: Dict[str, Any], actor: Actor) -> Transaction:
        """Add a transaction to an open unit of work (no commit, no event)."""
        status = Transaction.STATUS_APPROVED if actor.auto_approve else Transaction.STATUS_PENDING
        tx = Transaction(
            created_by=actor.id,
            approval_status=status,
            approved_by=actor.id if actor.auto_approve else None,
            **fields,
        )
        session.add(tx)
        session.flush()
        add_audit(session, actor, 'TX.CREATE', 'Transaction', tx.id, {
            'kind': tx.kind, 'amount_cents': tx.amount_cents, 'project_id': tx.project_id,
            'approval_status': tx.approval_status,
        })
        return tx

    def create(self, data: Dict[str, Any], actor: Actor) -> Transaction:
        fields = self.prepare(data)
        with unit_of_work(self._session_factory) as session:
            tx = self.insert(session, fields, actor)
        logger.info('Transaction %s created (%s %s, project %s, %s)', tx.id, tx.kind, tx.amount, tx.project_id, tx.approval_status)
        self.events.publish(LedgerMutated(tx.project_id, tx.kind, tx.id, 'create'))
        return tx

    # ---------- Transitions ---------- #

    def approve(self, tx_id: int, actor: Actor) -> Transaction:
        def apply(tx: Transaction):
            tx.approved_by = actor.id
        return self._transition(tx_id, Transaction.STATUS_APPROVED, actor, 'TX.APPROVE', apply)

    def reject(self, tx_id: int, actor: Actor, reason: Any) -> Transaction:
        reason = require_text(reason, 'reason')

        def apply(tx: Transaction):
            tx.rejection_reason = reason
        return self._transition(tx_id, Transaction.STATUS_REJECTED, actor, 'TX.REJECT', apply, {'reason': reason})

    def mark_paid(self, tx_id: int, actor: Actor) -> Transaction:
        return self._transition(tx_id, Transaction.STATUS_PAID, actor, 'TX.PAY')

    def _transition(self, tx_id: int, target: str, actor: Actor, action: str,
                    apply: Optional[Callable[[Transaction], None]] = None,
                    meta: Optional[Dict[str, Any]] = None) -> Transaction:
        with self.locks.hold(('transaction', tx_id)):
            with unit_of_work(self._session_factory) as session:
                tx = self._load(session, tx_id, for_update=True)
                before = tx.approval_status
                TX_FSM.assert_can_transition(before, target)
                tx.approval_status = target
                if apply:
                    apply(tx)
                add_audit(session, actor, action, 'Transaction', tx.id, dict(meta or {}, changes={
                    'approval_status': {'before': before, 'after': target},
                }))
        logger.info('Transaction %s %s -> %s by %s', tx.id, before, target, actor.id)
        self.events.publish(LedgerMutated(tx.project_id, tx.kind, tx.id, action))
        return tx

    # ---------- Edits ---------- #

    def update(self, tx_id: int, changes: Dict[str, Any], actor: Actor) -> Transaction:
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise InvalidInputError(f"fields not editable: {', '.join(sorted(unknown))}")
        values: Dict[str, Any] = {}
        if 'amount' in changes:
            values['amount_cents'] = parse_amount_cents(changes['amount'])
        if 'description' in changes:
            values['description'] = optional_text(changes['description'])
        if 'category' in changes:
            values['category'] = optional_text(changes['category'])
        if 'date' in changes:
            values['date'] = parse_date(changes['date'], 'date')
        if 'project_id' in changes:
            values['project_id'] = parse_int(changes['project_id'], 'project_id')
            self.ensure_project(values['project_id'])
        with self.locks.hold(('transaction', tx_id)):
            with unit_of_work(self._session_factory) as session:
                tx = self._load(session, tx_id, for_update=True)
                self._assert_mutable(session, tx, 'edited')
                if tx.kind == Transaction.KIND_PAYMENT:
                    values.pop('category', None)
                before = _snapshot(tx)
                old_project = tx.project_id
                for k, v in values.items():
                    setattr(tx, k, v)
                session.flush()
                add_audit(session, actor, 'TX.UPDATE', 'Transaction', tx.id, {
                    'changes': diff(before, _snapshot(tx), AUDIT_FIELDS),
                })
        self.events.publish(LedgerMutated(old_project, tx.kind, tx.id, 'update'))
        if tx.project_id != old_project:
            self.events.publish(LedgerMutated(tx.project_id, tx.kind, tx.id, 'update'))
        return tx

    def delete(self, tx_id: int, actor: Actor) -> None:
        with self.locks.hold(('transaction', tx_id)):
            with unit_of_work(self._session_factory) as session:
                tx = self._load(session, tx_id, for_update=True)
                self._assert_mutable(session, tx, 'deleted')
                project_id, kind = tx.project_id, tx.kind
                session.delete(tx)
                add_audit(session, actor, 'TX.DELETE', 'Transaction', tx_id, {
                    'kind': kind, 'amount_cents': tx.amount_cents, 'project_id': project_id,
                })
        logger.info('Transaction %s deleted by %s', tx_id, actor.id)
        self.events.publish(LedgerMutated(project_id, kind, tx_id, 'delete'))

    def _assert_mutable(self, session: Session, tx: Transaction, verb: str) -> None:
        if tx.approval_status != Transaction.STATUS_PENDING:
            raise ImmutableStateError(f'Transaction {tx.id} is {tx.approval_status} and cannot be {verb}')
        linked = session.execute(
            select(MaterialPurchase.id).where(MaterialPurchase.expense_id == tx.id)
        ).scalar_one_or_none()
        if linked is not None:
            raise ImmutableStateError(
                f'Transaction {tx.id} belongs to material purchase {linked}; change the purchase instead'
            )

    # ---------- Reads ---------- #

    def _load(self, session: Session, tx_id: int, for_update: bool = False) -> Transaction:
        stmt = select(Transaction).where(Transaction.id == tx_id)
        if for_update:
            stmt = stmt.with_for_update()
        tx = session.execute(stmt).scalar_one_or_none()
        if tx is None:
            raise NotFoundError('Transaction', tx_id)
        return tx

    def get(self, tx_id: int) -> Transaction:
        with read_session(self._session_factory) as session:
            return self._load(session, tx_id)

    def list(self, project_id: Optional[int] = None, kind: Optional[str] = None, status: Optional[str] = None,
             start_date: Optional[date] = None, end_date: Optional[date] = None) -> List[Transaction]:
        stmt = select(Transaction)
        if project_id is not None:
            stmt = stmt.where(Transaction.project_id == project_id)
        if kind:
            stmt = stmt.where(Transaction.kind == validate_status(kind, Transaction.ALL_KINDS, 'kind'))
        if status:
            stmt = stmt.where(Transaction.approval_status == validate_status(status, Transaction.ALL_STATUSES))
        if start_date:
            stmt = stmt.where(Transaction.date >= start_date)
        if end_date:
            stmt = stmt.where(Transaction.date <= end_date)
        stmt = stmt.order_by(Transaction.date.desc(), Transaction.id.desc())
        with read_session(self._session_factory) as session:
            return list(session.execute(stmt).scalars())

__all__ = ['TransactionLedger', 'TX_FSM', 'parse_amount_cents']
