from __future__ import annotations
from flask import Blueprint, request
from siteledger import get_ledger
from siteledger.decorators.auth import require_permissions, current_actor
from siteledger.models.material import MaterialPurchase, MaterialRequest
from siteledger.models.transaction import Transaction
from siteledger.routes.finances import _tx_json
from siteledger.utils.filters import parse_filters
from siteledger.utils.listing import make_list_response
from siteledger.utils.validation import parse_int

mat_bp = Blueprint('materials', __name__)


def _request_json(req: MaterialRequest):
    return {
        'id': req.id,
        'project_id': req.project_id,
        'description': req.description,
        'part_no': req.part_no,
        'quantity': req.quantity,
        'estimated_cost': str(req.estimated_cost) if req.estimated_cost is not None else None,
        'urgency': req.urgency,
        'status': req.status,
        'rejection_reason': req.rejection_reason,
        'notes': req.notes,
        'requested_by': req.requested_by,
        'approved_by': req.approved_by,
        'rejected_by': req.rejected_by,
        'created_at': req.created_at.isoformat() if req.created_at else None,
    }


def _purchase_json(p: MaterialPurchase):
    return {
        'id': p.id,
        'project_id': p.project_id,
        'description': p.description,
        'part_no': p.part_no,
        'hsn': p.hsn,
        'quantity': p.quantity,
        'unit_price': str(p.unit_price),
        'tax_rate_percent': str(p.tax_rate_percent),
        'total_amount': str(p.total_amount),
        'total_cents': p.total_cents,
        'vendor': p.vendor,
        'invoice_number': p.invoice_number,
        'purchase_date': p.purchase_date.isoformat() if p.purchase_date else None,
        'request_id': p.request_id,
        'expense_id': p.expense_id,
        'created_by': p.created_by,
    }


@mat_bp.get('/requests')
@require_permissions('MAT.READ')
def list_requests():
    kwargs = parse_filters({
        'project': {'coerce': lambda v: parse_int(v, 'project'), 'dest': 'project_id'},
        'status': {'validate': lambda v: v in MaterialRequest.ALL_STATUSES},
    }, request.args)
    return make_list_response(get_ledger().materials.list_requests(**kwargs), _request_json)


@mat_bp.post('/requests')
@require_permissions('MAT.REQUEST')
def create_request():
    data = request.get_json(silent=True) or {}
    req = get_ledger().materials.create_request(data, current_actor())
    return _request_json(req), 201


@mat_bp.get('/requests/<int:request_id>')
@require_permissions('MAT.READ')
def get_request(request_id: int):
    return _request_json(get_ledger().materials.get_request(request_id))


@mat_bp.post('/requests/<int:request_id>/approve')
@require_permissions('MAT.APPROVE')
def approve_request(request_id: int):
    return _request_json(get_ledger().materials.approve_request(request_id, current_actor()))


@mat_bp.post('/requests/<int:request_id>/reject')
@require_permissions('MAT.APPROVE')
def reject_request(request_id: int):
    data = request.get_json(silent=True) or {}
    return _request_json(get_ledger().materials.reject_request(request_id, current_actor(), data.get('reason')))


@mat_bp.delete('/requests/<int:request_id>')
@require_permissions('MAT.REQUEST')
def delete_request(request_id: int):
    get_ledger().materials.delete_request(request_id, current_actor())
    return {'id': request_id, 'deleted': True}


@mat_bp.get('/purchases')
@require_permissions('MAT.READ')
def list_purchases():
    kwargs = parse_filters({
        'project': {'coerce': lambda v: parse_int(v, 'project'), 'dest': 'project_id'},
    }, request.args)
    return make_list_response(get_ledger().materials.list_purchases(**kwargs), _purchase_json)


@mat_bp.post('/purchases')
@require_permissions('MAT.PURCHASE')
def create_purchase():
    data = request.get_json(silent=True) or {}
    purchase, expense = get_ledger().materials.create_purchase(data, current_actor(Transaction.KIND_EXPENSE))
    return {'purchase': _purchase_json(purchase), 'expense': _tx_json(expense)}, 201


@mat_bp.get('/purchases/<int:purchase_id>')
@require_permissions('MAT.READ')
def get_purchase(purchase_id: int):
    return _purchase_json(get_ledger().materials.get_purchase(purchase_id))


@mat_bp.delete('/purchases/<int:purchase_id>')
@require_permissions('MAT.DELETE')
def delete_purchase(purchase_id: int):
    get_ledger().materials.delete_purchase(purchase_id, current_actor())
    return {'id': purchase_id, 'deleted': True}
