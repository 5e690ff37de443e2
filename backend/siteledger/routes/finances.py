from __future__ import annotations
from flask import Blueprint, request
from sqlalchemy import select
from siteledger import get_ledger
from siteledger.decorators.auth import require_permissions, current_actor
from siteledger.errors import InvalidInputError
from siteledger.models.expense_category import ExpenseCategory
from siteledger.models.transaction import Transaction
from siteledger.services.ledger import TX_FSM
from siteledger.services.uow import unit_of_work, read_session
from siteledger.utils.filters import parse_filters
from siteledger.utils.listing import make_list_response
from siteledger.utils.validation import parse_date, parse_int, require_text

fin_bp = Blueprint('finances', __name__)

TX_FILTERS = {
    'project': {'coerce': lambda v: parse_int(v, 'project'), 'dest': 'project_id'},
    'kind': {'validate': lambda v: v in Transaction.ALL_KINDS},
    'status': {'validate': lambda v: v in Transaction.ALL_STATUSES},
    'start_date': {'coerce': lambda v: parse_date(v, 'start_date')},
    'end_date': {'coerce': lambda v: parse_date(v, 'end_date')},
}


def _tx_json(tx: Transaction):
    return {
        'id': tx.id,
        'kind': tx.kind,
        'amount': str(tx.amount),
        'amount_cents': tx.amount_cents,
        'project_id': tx.project_id,
        'date': tx.date.isoformat() if tx.date else None,
        'category': tx.category,
        'description': tx.description,
        'approval_status': tx.approval_status,
        'rejection_reason': tx.rejection_reason,
        'created_by': tx.created_by,
        'approved_by': tx.approved_by,
        'created_at': tx.created_at.isoformat() if tx.created_at else None,
    }


@fin_bp.get('/transactions')
@require_permissions('FIN.READ')
def list_transactions():
    kwargs = parse_filters(TX_FILTERS, request.args)
    return make_list_response(get_ledger().ledger.list(**kwargs), _tx_json)


@fin_bp.post('/transactions')
@require_permissions('FIN.CREATE')
def create_transaction():
    data = request.get_json(silent=True) or {}
    tx = get_ledger().ledger.create(data, current_actor(data.get('kind')))
    return _tx_json(tx), 201


@fin_bp.get('/transactions/<int:tx_id>')
@require_permissions('FIN.READ')
def get_transaction(tx_id: int):
    return _tx_json(get_ledger().ledger.get(tx_id))


@fin_bp.put('/transactions/<int:tx_id>')
@require_permissions('FIN.UPDATE')
def update_transaction(tx_id: int):
    data = request.get_json(silent=True) or {}
    return _tx_json(get_ledger().ledger.update(tx_id, data, current_actor()))


@fin_bp.delete('/transactions/<int:tx_id>')
@require_permissions('FIN.DELETE')
def delete_transaction(tx_id: int):
    get_ledger().ledger.delete(tx_id, current_actor())
    return {'id': tx_id, 'deleted': True}


@fin_bp.post('/transactions/<int:tx_id>/approve')
@require_permissions('FIN.APPROVE')
def approve_transaction(tx_id: int):
    return _tx_json(get_ledger().ledger.approve(tx_id, current_actor()))


@fin_bp.post('/transactions/<int:tx_id>/reject')
@require_permissions('FIN.APPROVE')
def reject_transaction(tx_id: int):
    data = request.get_json(silent=True) or {}
    return _tx_json(get_ledger().ledger.reject(tx_id, current_actor(), data.get('reason')))


@fin_bp.post('/transactions/<int:tx_id>/pay')
@require_permissions('FIN.PAY')
def pay_transaction(tx_id: int):
    return _tx_json(get_ledger().ledger.mark_paid(tx_id, current_actor()))


@fin_bp.get('/transitions')
@require_permissions('FIN.READ')
def transaction_transitions():
    return {'approval_status': TX_FSM.as_dict()}


@fin_bp.get('/expense-categories')
@require_permissions('FIN.READ')
def list_expense_categories():
    with read_session(get_ledger().session_factory) as session:
        names = list(session.execute(select(ExpenseCategory.name).order_by(ExpenseCategory.name)).scalars())
    return {'data': names}


@fin_bp.post('/expense-categories')
@require_permissions('CAT.MANAGE')
def create_expense_category():
    data = request.get_json(silent=True) or {}
    name = require_text(data.get('category'), 'category')
    with unit_of_work(get_ledger().session_factory) as session:
        exists = session.execute(select(ExpenseCategory).where(ExpenseCategory.name == name)).scalar_one_or_none()
        if exists:
            raise InvalidInputError('Category already exists')
        session.add(ExpenseCategory(name=name))
    # Category breakdowns list every known category, so cached ones are stale now
    get_ledger().aggregates.clear()
    return {'category': name}, 201
