from __future__ import annotations
from flask import Blueprint, request
from siteledger import get_ledger
from siteledger.decorators.auth import require_permissions
from siteledger.services.aggregates import (
    FilterSet, ViewResult, FINANCIAL_SUMMARY, CATEGORY_EXPENSES, CHART_SERIES, PER_PROJECT_ROLLUP,
)
from siteledger.utils.filters import parse_filters
from siteledger.utils.listing import compute_etag, make_cached_response
from siteledger.utils.validation import parse_date, parse_int

rpt_bp = Blueprint('reports', __name__)

VIEW_FILTERS = {
    'start_date': {'coerce': lambda v: parse_date(v, 'start_date')},
    'end_date': {'coerce': lambda v: parse_date(v, 'end_date')},
    'project': {'coerce': lambda v: parse_int(v, 'project'), 'dest': 'project_id'},
    'company': {'coerce': lambda v: parse_int(v, 'company'), 'dest': 'company_id'},
}


def _filters_from_args() -> FilterSet:
    return FilterSet(**parse_filters(VIEW_FILTERS, request.args))


def _view_response(view_name: str):
    result: ViewResult = get_ledger().aggregates.read(view_name, _filters_from_args())
    etag = compute_etag(result.name, result.filters.as_dict(), result.generation)
    body = {
        'view': result.name,
        'filters': result.filters.as_dict(),
        'generation': result.generation,
        'data': result.value,
    }
    return make_cached_response(body, etag, {'X-View-Generation': str(result.generation)})


@rpt_bp.get('/summary')
@require_permissions('RPT.READ')
def financial_summary():
    return _view_response(FINANCIAL_SUMMARY)


@rpt_bp.get('/category-expenses')
@require_permissions('RPT.READ')
def category_expenses():
    return _view_response(CATEGORY_EXPENSES)


@rpt_bp.get('/chart-data')
@require_permissions('RPT.READ')
def chart_data():
    return _view_response(CHART_SERIES)


@rpt_bp.get('/project-rollup')
@require_permissions('RPT.READ')
def project_rollup():
    return _view_response(PER_PROJECT_ROLLUP)


@rpt_bp.get('/cache-stats')
@require_permissions('RPT.READ')
def cache_stats():
    cache = get_ledger().aggregates
    return dict(cache.stats.to_dict(), entries=cache.size)
