from __future__ import annotations
from flask import Blueprint, request
from siteledger import get_ledger
from siteledger.decorators.auth import require_permissions, current_actor
from siteledger.models.transaction import Transaction
from siteledger.routes.finances import _tx_json
from siteledger.routes.materials import _request_json
from siteledger.services.approvals import PendingFilter, ITEM_TRANSACTION, ITEM_MATERIAL_REQUEST, ITEM_TYPES
from siteledger.utils.filters import parse_filters
from siteledger.utils.listing import make_list_response
from siteledger.utils.validation import parse_int

apr_bp = Blueprint('approvals', __name__)

_SERIALIZERS = {
    ITEM_TRANSACTION: _tx_json,
    ITEM_MATERIAL_REQUEST: _request_json,
}


def _result_json(item_type: str, item):
    return {'item_type': item_type, 'item': _SERIALIZERS[item_type](item)}


def _item_json(pending):
    return _result_json(pending.item_type, pending.item)


@apr_bp.get('/pending')
@require_permissions('APR.READ')
def list_pending():
    kwargs = parse_filters({
        'project': {'coerce': lambda v: parse_int(v, 'project'), 'dest': 'project_id'},
        # Unknown item types surface as UnknownItemTypeError from the orchestrator
        'item_type': {},
        'kind': {'validate': lambda v: v in Transaction.ALL_KINDS},
    }, request.args)
    items = get_ledger().approvals.list_pending(PendingFilter(**kwargs))
    return make_list_response(items, _item_json)


@apr_bp.post('/<item_type>/<int:item_id>/approve')
@require_permissions('FIN.APPROVE', 'MAT.APPROVE')
def approve_item(item_type: str, item_id: int):
    item = get_ledger().approvals.approve(item_type, item_id, current_actor())
    return _result_json(item_type, item)


@apr_bp.post('/<item_type>/<int:item_id>/reject')
@require_permissions('FIN.APPROVE', 'MAT.APPROVE')
def reject_item(item_type: str, item_id: int):
    data = request.get_json(silent=True) or {}
    item = get_ledger().approvals.reject(item_type, item_id, current_actor(), data.get('reason'))
    return _result_json(item_type, item)


@apr_bp.get('/item-types')
@require_permissions('APR.READ')
def item_types():
    return {'data': list(ITEM_TYPES)}
