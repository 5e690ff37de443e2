from __future__ import annotations
"""Material requests and purchases.

A purchase is never stored alone: the purchase row, its paired ``materials``
expense and (when it fulfils an approved request) the request's move to
``purchased`` are written in one unit of work. If any step fails the whole
unit is rolled back and the caller sees a single error.

Request lifecycle::

    pending -> approved -> purchased
    pending -> rejected
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from siteledger.errors import InvalidInputError, NotFoundError, ImmutableStateError
from siteledger.models.expense_category import MATERIALS_CATEGORY
from siteledger.models.material import MaterialPurchase, MaterialRequest
from siteledger.models.transaction import Transaction
from siteledger.services.audit import add_audit
from siteledger.services.events import EventBus, LedgerMutated, MaterialRequestMutated
from siteledger.services.ledger import TransactionLedger
from siteledger.services.locks import EntityLocks
from siteledger.services.money import compute_total, require_scale, to_decimal, to_minor_units, round2
from siteledger.services.policy import Actor
from siteledger.services.uow import unit_of_work, read_session
from siteledger.utils.fsm import TransitionValidator
from siteledger.utils.validation import validate_status, require_text, optional_text, parse_date, parse_int

logger = logging.getLogger(__name__)

REQUEST_FSM = TransitionValidator({
    MaterialRequest.STATUS_PENDING: {MaterialRequest.STATUS_APPROVED, MaterialRequest.STATUS_REJECTED},
    MaterialRequest.STATUS_APPROVED: {MaterialRequest.STATUS_PURCHASED},
    MaterialRequest.STATUS_REJECTED: set(),
    MaterialRequest.STATUS_PURCHASED: set(),
}, entity='MaterialRequest')


def _positive_quantity(value: Any) -> int:
    if value is None:
        raise InvalidInputError('quantity required')
    qty = parse_int(value, 'quantity')
    if qty < 1:
        raise InvalidInputError('quantity must be at least 1')
    return qty


class MaterialWorkflow:
    def __init__(self, session_factory: Callable[[], Session], ledger: TransactionLedger, events: EventBus, locks: EntityLocks):
        self._session_factory = session_factory
        self.ledger = ledger
        self.events = events
        self.locks = locks

    # ---------- Requests ---------- #

    def create_request(self, data: Dict[str, Any], actor: Actor) -> MaterialRequest:
        if data.get('project_id') is None:
            raise InvalidInputError('project_id required')
        project_id = parse_int(data.get('project_id'), 'project_id')
        estimated = data.get('estimated_cost')
        estimated_cents = None
        if estimated is not None and estimated != '':
            cost = to_decimal(estimated, 'estimated_cost')
            if cost < 0:
                raise InvalidInputError('estimated_cost must be non-negative')
            estimated_cents = to_minor_units(round2(cost))
        fields = {
            'project_id': project_id,
            'description': require_text(data.get('description'), 'description'),
            'part_no': optional_text(data.get('part_no')),
            'quantity': _positive_quantity(data.get('quantity')),
            'estimated_cost_cents': estimated_cents,
            'urgency': validate_status(data.get('urgency') or MaterialRequest.URGENCY_MEDIUM, MaterialRequest.ALL_URGENCIES, 'urgency'),
            'notes': optional_text(data.get('notes')),
        }
        self.ledger.ensure_project(project_id)
        with unit_of_work(self._session_factory) as session:
            req = MaterialRequest(requested_by=actor.id, status=MaterialRequest.STATUS_PENDING, **fields)
            session.add(req)
            session.flush()
            add_audit(session, actor, 'MR.CREATE', 'MaterialRequest', req.id, {
                'project_id': req.project_id, 'quantity': req.quantity, 'urgency': req.urgency,
            })
        self.events.publish(MaterialRequestMutated(req.project_id, req.id, req.status, 'create'))
        return req

    def approve_request(self, request_id: int, actor: Actor) -> MaterialRequest:
        def apply(req: MaterialRequest):
            req.approved_by = actor.id
        return self._transition(request_id, MaterialRequest.STATUS_APPROVED, actor, 'MR.APPROVE', apply)

    def reject_request(self, request_id: int, actor: Actor, reason: Any) -> MaterialRequest:
        reason = require_text(reason, 'reason')

        def apply(req: MaterialRequest):
            req.rejection_reason = reason
            req.rejected_by = actor.id
        return self._transition(request_id, MaterialRequest.STATUS_REJECTED, actor, 'MR.REJECT', apply, {'reason': reason})

    def _transition(self, request_id: int, target: str, actor: Actor, action: str,
                    apply: Callable[[MaterialRequest], None], meta: Optional[Dict[str, Any]] = None) -> MaterialRequest:
        with self.locks.hold(('material_request', request_id)):
            with unit_of_work(self._session_factory) as session:
                req = self._load_request(session, request_id, for_update=True)
                before = req.status
                REQUEST_FSM.assert_can_transition(before, target)
                req.status = target
                apply(req)
                add_audit(session, actor, action, 'MaterialRequest', req.id, dict(meta or {}, changes={
                    'status': {'before': before, 'after': target},
                }))
        logger.info('MaterialRequest %s %s -> %s by %s', req.id, before, target, actor.id)
        self.events.publish(MaterialRequestMutated(req.project_id, req.id, req.status, action))
        return req

    def delete_request(self, request_id: int, actor: Actor) -> None:
        with self.locks.hold(('material_request', request_id)):
            with unit_of_work(self._session_factory) as session:
                req = self._load_request(session, request_id, for_update=True)
                if req.status != MaterialRequest.STATUS_PENDING:
                    raise ImmutableStateError(f'MaterialRequest {req.id} is {req.status} and cannot be deleted')
                project_id = req.project_id
                session.delete(req)
                add_audit(session, actor, 'MR.DELETE', 'MaterialRequest', request_id, {'project_id': project_id})
        self.events.publish(MaterialRequestMutated(project_id, request_id, 'deleted', 'MR.DELETE'))

    # ---------- Purchases ---------- #

    def create_purchase(self, data: Dict[str, Any], actor: Actor) -> Tuple[MaterialPurchase, Transaction]:
        """Store a purchase together with its paired expense (and request fulfilment)."""
        if data.get('project_id') is None:
            raise InvalidInputError('project_id required')
        if data.get('unit_price') is None:
            raise InvalidInputError('unit_price required')
        project_id = parse_int(data.get('project_id'), 'project_id')
        quantity = _positive_quantity(data.get('quantity'))
        tax_rate = data.get('tax_rate_percent')
        # Values must survive the Numeric(5,2) / Numeric(14,4) columns unchanged
        tax_rate = require_scale(to_decimal(0 if tax_rate in (None, '') else tax_rate, 'tax_rate_percent'), 2, 'tax_rate_percent')
        unit_price = require_scale(to_decimal(data.get('unit_price'), 'unit_price'), 4, 'unit_price')
        total = compute_total(quantity, unit_price, tax_rate)
        if total <= 0:
            raise InvalidInputError('purchase total must be greater than zero')
        description = require_text(data.get('description'), 'description')
        purchase_date = parse_date(data.get('purchase_date'), 'purchase_date')
        request_id = data.get('request_id')
        request_id = parse_int(request_id, 'request_id') if request_id not in (None, '') else None
        self.ledger.ensure_project(project_id)

        expense_fields = {
            'kind': Transaction.KIND_EXPENSE,
            'amount_cents': to_minor_units(total),
            'project_id': project_id,
            'date': purchase_date,
            'category': MATERIALS_CATEGORY,
            'description': f'Material Purchase: {description}',
        }
        lock_keys = [('material_request', request_id)] if request_id is not None else []
        with self.locks.hold(*lock_keys):
            with unit_of_work(self._session_factory) as session:
                req = None
                if request_id is not None:
                    req = self._load_request(session, request_id, for_update=True)
                    if req.project_id != project_id:
                        raise InvalidInputError(f'MaterialRequest {req.id} belongs to another project')
                    REQUEST_FSM.assert_can_transition(req.status, MaterialRequest.STATUS_PURCHASED)
                purchase = MaterialPurchase(
                    project_id=project_id,
                    description=description,
                    part_no=optional_text(data.get('part_no')),
                    hsn=optional_text(data.get('hsn')),
                    quantity=quantity,
                    unit_price=unit_price,
                    tax_rate_percent=tax_rate,
                    total_cents=to_minor_units(total),
                    vendor=optional_text(data.get('vendor')),
                    invoice_number=optional_text(data.get('invoice_number')),
                    purchase_date=purchase_date,
                    request_id=request_id,
                    created_by=actor.id,
                )
                session.add(purchase)
                session.flush()
                expense = self.ledger.insert(session, expense_fields, actor)
                purchase.expense_id = expense.id
                if req is not None:
                    req.status = MaterialRequest.STATUS_PURCHASED
                    add_audit(session, actor, 'MR.PURCHASE', 'MaterialRequest', req.id, {
                        'purchase_id': purchase.id,
                        'changes': {'status': {'before': MaterialRequest.STATUS_APPROVED, 'after': MaterialRequest.STATUS_PURCHASED}},
                    })
                add_audit(session, actor, 'MP.CREATE', 'MaterialPurchase', purchase.id, {
                    'project_id': project_id, 'total_cents': purchase.total_cents, 'expense_id': expense.id,
                })
        logger.info('MaterialPurchase %s created with expense %s (%s)', purchase.id, expense.id, total)
        self.events.publish(LedgerMutated(project_id, expense.kind, expense.id, 'MP.CREATE'))
        if req is not None:
            self.events.publish(MaterialRequestMutated(project_id, req.id, req.status, 'MR.PURCHASE'))
        return purchase, expense

    def delete_purchase(self, purchase_id: int, actor: Actor) -> None:
        """Remove a purchase and its paired expense, only while that expense is pending."""
        current = self.get_purchase(purchase_id)
        keys = [('material_purchase', purchase_id)]
        if current.expense_id is not None:
            keys.append(('transaction', current.expense_id))
        with self.locks.hold(*keys):
            with unit_of_work(self._session_factory) as session:
                purchase = self._load_purchase(session, purchase_id, for_update=True)
                expense = None
                if purchase.expense_id is not None:
                    expense = session.execute(
                        select(Transaction).where(Transaction.id == purchase.expense_id).with_for_update()
                    ).scalar_one_or_none()
                if expense is not None and expense.approval_status != Transaction.STATUS_PENDING:
                    raise ImmutableStateError(
                        f'MaterialPurchase {purchase.id} has a {expense.approval_status} expense and cannot be deleted'
                    )
                project_id = purchase.project_id
                purchase.expense_id = None
                session.flush()
                if expense is not None:
                    session.delete(expense)
                session.delete(purchase)
                add_audit(session, actor, 'MP.DELETE', 'MaterialPurchase', purchase_id, {
                    'project_id': project_id, 'expense_id': expense.id if expense is not None else None,
                })
        logger.info('MaterialPurchase %s deleted by %s', purchase_id, actor.id)
        self.events.publish(LedgerMutated(project_id, Transaction.KIND_EXPENSE, current.expense_id, 'MP.DELETE'))

    # ---------- Reads ---------- #

    def _load_request(self, session: Session, request_id: int, for_update: bool = False) -> MaterialRequest:
        stmt = select(MaterialRequest).where(MaterialRequest.id == request_id)
        if for_update:
            stmt = stmt.with_for_update()
        req = session.execute(stmt).scalar_one_or_none()
        if req is None:
            raise NotFoundError('MaterialRequest', request_id)
        return req

    def _load_purchase(self, session: Session, purchase_id: int, for_update: bool = False) -> MaterialPurchase:
        stmt = select(MaterialPurchase).where(MaterialPurchase.id == purchase_id)
        if for_update:
            stmt = stmt.with_for_update()
        purchase = session.execute(stmt).scalar_one_or_none()
        if purchase is None:
            raise NotFoundError('MaterialPurchase', purchase_id)
        return purchase

    def get_request(self, request_id: int) -> MaterialRequest:
        with read_session(self._session_factory) as session:
            return self._load_request(session, request_id)

    def get_purchase(self, purchase_id: int) -> MaterialPurchase:
        with read_session(self._session_factory) as session:
            return self._load_purchase(session, purchase_id)

    def list_requests(self, project_id: Optional[int] = None, status: Optional[str] = None) -> List[MaterialRequest]:
        stmt = select(MaterialRequest)
        if project_id is not None:
            stmt = stmt.where(MaterialRequest.project_id == project_id)
        if status:
            stmt = stmt.where(MaterialRequest.status == validate_status(status, MaterialRequest.ALL_STATUSES))
        stmt = stmt.order_by(MaterialRequest.created_at.desc(), MaterialRequest.id.desc())
        with read_session(self._session_factory) as session:
            return list(session.execute(stmt).scalars())

    def list_purchases(self, project_id: Optional[int] = None) -> List[MaterialPurchase]:
        stmt = select(MaterialPurchase)
        if project_id is not None:
            stmt = stmt.where(MaterialPurchase.project_id == project_id)
        stmt = stmt.order_by(MaterialPurchase.created_at.desc(), MaterialPurchase.id.desc())
        with read_session(self._session_factory) as session:
            return list(session.execute(stmt).scalars())

__all__ = ['MaterialWorkflow', 'REQUEST_FSM']
