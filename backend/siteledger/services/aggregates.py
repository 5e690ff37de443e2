from __future__ import annotations
"""Derived financial views with generation-based invalidation.

Views are pure functions of the transaction set restricted by an immutable
``FilterSet``. The cache is disposable: every entry can be rebuilt from the
ledger at any time and holds no data of its own.

Generations
    A counter exists per input scope: the whole ledger, each project and each
    company. An entry remembers the generation of its scope when it was
    computed and is served only while that generation is unchanged.

Invalidation rule
    ``LedgerMutated(project P)`` advances the global, P and company-of-P
    generations and evicts every key that is unfiltered, filtered by P, or
    filtered by P's company. Keys scoped to other projects/companies keep
    both value and generation. Recomputation is lazy (next read).

A recomputation that overlaps a mutation of its scope is returned to its
caller but not cached.
"""
import copy
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from siteledger.errors import InvalidInputError
from siteledger.models.company import Project
from siteledger.models.expense_category import ExpenseCategory, OTHER_CATEGORY, MATERIALS_CATEGORY
from siteledger.models.transaction import Transaction
from siteledger.services.events import EventBus, LedgerMutated
from siteledger.services.money import from_minor_units
from siteledger.services.projects import ProjectLookup
from siteledger.services.uow import read_session

logger = logging.getLogger(__name__)

FINANCIAL_SUMMARY = 'financialSummary'
CATEGORY_EXPENSES = 'categoryExpenses'
CHART_SERIES = 'chartSeries'
PER_PROJECT_ROLLUP = 'perProjectRollup'

MONTH_LABELS = ('Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec')

Scope = Tuple[str, Optional[int]]
GLOBAL_SCOPE: Scope = ('global', None)


@dataclass(frozen=True)
class FilterSet:
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    project_id: Optional[int] = None
    company_id: Optional[int] = None

    def __post_init__(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise InvalidInputError('start_date must not be after end_date')

    @property
    def is_unfiltered(self) -> bool:
        return self.project_id is None and self.company_id is None

    def scope(self) -> Scope:
        if self.project_id is not None:
            return ('project', self.project_id)
        if self.company_id is not None:
            return ('company', self.company_id)
        return GLOBAL_SCOPE

    def affected_by(self, project_id: int, company_id: Optional[int], company_unknown: bool = False) -> bool:
        if self.is_unfiltered or self.project_id == project_id:
            return True
        if self.company_id is None:
            return False
        return company_unknown or self.company_id == company_id

    def as_dict(self) -> Dict[str, Any]:
        return {
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'project_id': self.project_id,
            'company_id': self.company_id,
        }


ViewKey = Tuple[str, FilterSet]


@dataclass
class CacheEntry:
    value: Any
    generation: int


@dataclass(frozen=True)
class ViewResult:
    name: str
    filters: FilterSet
    value: Any
    generation: int
    from_cache: bool


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    invalidations: int = 0
    discarded: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hits': self.hits,
            'misses': self.misses,
            'invalidations': self.invalidations,
            'discarded': self.discarded,
            'hit_rate': round(self.hit_rate, 4),
        }


# ---------- View computations ---------- #

def _scoped(stmt, filters: FilterSet):
    if filters.project_id is not None:
        stmt = stmt.where(Transaction.project_id == filters.project_id)
    if filters.company_id is not None:
        stmt = stmt.where(Transaction.project_id.in_(select(Project.id).where(Project.company_id == filters.company_id)))
    if filters.start_date:
        stmt = stmt.where(Transaction.date >= filters.start_date)
    if filters.end_date:
        stmt = stmt.where(Transaction.date <= filters.end_date)
    return stmt


def financial_summary(session: Session, filters: FilterSet) -> Dict[str, Decimal]:
    rows = session.execute(_scoped(
        select(Transaction.kind, Transaction.approval_status, Transaction.amount_cents), filters
    )).all()
    totals = defaultdict(int)
    for kind, status, cents in rows:
        totals[(kind, status)] += cents
    revenue = sum(totals[(Transaction.KIND_PAYMENT, s)] for s in Transaction.COUNTED_STATUSES)
    expenses = sum(totals[(Transaction.KIND_EXPENSE, s)] for s in Transaction.COUNTED_STATUSES)
    return {
        'total_revenue': from_minor_units(revenue),
        'total_expenses': from_minor_units(expenses),
        'profit': from_minor_units(revenue - expenses),
        'pending_payments': from_minor_units(totals[(Transaction.KIND_PAYMENT, Transaction.STATUS_PENDING)]),
        'pending_expenses': from_minor_units(totals[(Transaction.KIND_EXPENSE, Transaction.STATUS_PENDING)]),
        'unsettled_payments': from_minor_units(totals[(Transaction.KIND_PAYMENT, Transaction.STATUS_APPROVED)]),
    }


def category_expenses(session: Session, filters: FilterSet) -> Dict[str, Any]:
    names = list(session.execute(select(ExpenseCategory.name).order_by(ExpenseCategory.name)).scalars())
    if MATERIALS_CATEGORY not in names:
        names.append(MATERIALS_CATEGORY)
        names.sort()
    buckets: Dict[str, int] = {n: 0 for n in names if n != OTHER_CATEGORY}
    buckets[OTHER_CATEGORY] = 0
    rows = session.execute(_scoped(
        select(Transaction.category, Transaction.amount_cents)
        .where(Transaction.kind == Transaction.KIND_EXPENSE)
        .where(Transaction.approval_status.in_(Transaction.COUNTED_STATUSES)), filters
    )).all()
    for category, cents in rows:
        bucket = category if category in buckets else OTHER_CATEGORY
        buckets[bucket] += cents
    return {
        'labels': list(buckets.keys()),
        'data': [from_minor_units(c) for c in buckets.values()],
        'total': from_minor_units(sum(buckets.values())),
    }


def chart_series(session: Session, filters: FilterSet) -> Dict[str, Any]:
    year = filters.start_date.year
    income = [0] * 12
    expenses = [0] * 12
    rows = session.execute(_scoped(
        select(Transaction.kind, Transaction.date, Transaction.amount_cents)
        .where(Transaction.approval_status.in_(Transaction.COUNTED_STATUSES)), filters
    )).all()
    for kind, tx_date, cents in rows:
        if tx_date.year != year:
            continue
        series = income if kind == Transaction.KIND_PAYMENT else expenses
        series[tx_date.month - 1] += cents
    return {
        'year': year,
        'labels': list(MONTH_LABELS),
        'income': [from_minor_units(c) for c in income],
        'expenses': [from_minor_units(c) for c in expenses],
    }


def per_project_rollup(session: Session, filters: FilterSet) -> List[Dict[str, Any]]:
    stmt = select(Project)
    if filters.project_id is not None:
        stmt = stmt.where(Project.id == filters.project_id)
    if filters.company_id is not None:
        stmt = stmt.where(Project.company_id == filters.company_id)
    projects = list(session.execute(stmt.order_by(Project.id)).scalars())
    revenue = defaultdict(int)
    expenses = defaultdict(int)
    rows = session.execute(_scoped(
        select(Transaction.project_id, Transaction.kind, Transaction.amount_cents)
        .where(Transaction.approval_status.in_(Transaction.COUNTED_STATUSES)), filters
    )).all()
    for project_id, kind, cents in rows:
        (revenue if kind == Transaction.KIND_PAYMENT else expenses)[project_id] += cents
    out = []
    for p in projects:
        spent = expenses[p.id]
        out.append({
            'project_id': p.id,
            'name': p.name,
            'company_id': p.company_id,
            'revenue': from_minor_units(revenue[p.id]),
            'expenses': from_minor_units(spent),
            'profit': from_minor_units(revenue[p.id] - spent),
            'budget': from_minor_units(p.budget_cents) if p.budget_cents is not None else None,
            'remaining_budget': from_minor_units(p.budget_cents - spent) if p.budget_cents is not None else None,
        })
    return out


def _year_window(filters: FilterSet, today: date) -> FilterSet:
    """Chart series always covers one calendar year."""
    anchor = filters.start_date or filters.end_date or today
    start = filters.start_date or date(anchor.year, 1, 1)
    end = filters.end_date or date(anchor.year, 12, 31)
    if end.year != start.year:
        end = date(start.year, 12, 31)
    return replace(filters, start_date=start, end_date=end)


@dataclass(frozen=True)
class ViewSpec:
    compute: Callable[[Session, FilterSet], Any]
    normalize: Optional[Callable[[FilterSet, date], FilterSet]] = None


VIEWS: Dict[str, ViewSpec] = {
    FINANCIAL_SUMMARY: ViewSpec(financial_summary),
    CATEGORY_EXPENSES: ViewSpec(category_expenses),
    CHART_SERIES: ViewSpec(chart_series, normalize=_year_window),
    PER_PROJECT_ROLLUP: ViewSpec(per_project_rollup),
}


class AggregateCache:
    def __init__(self, session_factory: Callable[[], Session], projects: ProjectLookup,
                 today: Callable[[], date] = date.today, views: Optional[Dict[str, ViewSpec]] = None):
        self._session_factory = session_factory
        self.projects = projects
        self.today = today
        self.views = dict(views or VIEWS)
        self._entries: Dict[ViewKey, CacheEntry] = {}
        self._generations: Dict[Hashable, int] = defaultdict(int)
        self._lock = threading.Lock()
        self.stats = CacheStats()

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(LedgerMutated, self.on_ledger_mutated)

    def key_for(self, view_name: str, filters: Optional[FilterSet] = None) -> ViewKey:
        spec = self.views.get(view_name)
        if spec is None:
            raise InvalidInputError(f'Unknown view {view_name!r}')
        filters = filters or FilterSet()
        if spec.normalize:
            filters = spec.normalize(filters, self.today())
        return view_name, filters

    def generation_of(self, view_name: str, filters: Optional[FilterSet] = None) -> int:
        _, normalized = self.key_for(view_name, filters)
        with self._lock:
            return self._generations[normalized.scope()]

    def read(self, view_name: str, filters: Optional[FilterSet] = None) -> ViewResult:
        key = self.key_for(view_name, filters)
        _, normalized = key
        scope = normalized.scope()
        with self._lock:
            generation = self._generations[scope]
            entry = self._entries.get(key)
            if entry is not None and entry.generation == generation:
                self.stats.hits += 1
                return ViewResult(view_name, normalized, copy.deepcopy(entry.value), entry.generation, True)
            self.stats.misses += 1
        with read_session(self._session_factory) as session:
            value = self.views[view_name].compute(session, normalized)
        with self._lock:
            if self._generations[scope] == generation:
                # Callers get their own copy; the cached value is never handed out
                self._entries[key] = CacheEntry(copy.deepcopy(value), generation)
            else:
                self.stats.discarded += 1
                logger.debug('Discarded %s recomputation: scope %s advanced during compute', view_name, scope)
        return ViewResult(view_name, normalized, value, generation, False)

    def value(self, view_name: str, filters: Optional[FilterSet] = None) -> Any:
        return self.read(view_name, filters).value

    def on_ledger_mutated(self, event: LedgerMutated) -> int:
        # Unfiltered and project views go stale before the company lookup can fail
        evicted = self._invalidate_project(event.project_id)
        try:
            company_id = self.projects.company_of(event.project_id)
        except Exception as exc:
            # Cannot tell which company filter is affected: treat every one as stale
            logger.warning('Company lookup failed for project %s (%s); invalidating all company views', event.project_id, exc)
            return evicted + self._invalidate_company(event.project_id, None, company_unknown=True)
        return evicted + self._invalidate_company(event.project_id, company_id)

    def invalidate(self, project_id: int, company_id: Optional[int], company_unknown: bool = False) -> int:
        return self._invalidate_project(project_id) + self._invalidate_company(project_id, company_id, company_unknown)

    def _invalidate_project(self, project_id: int) -> int:
        with self._lock:
            self._generations[GLOBAL_SCOPE] += 1
            self._generations[('project', project_id)] += 1
            stale = [k for k in self._entries if k[1].affected_by(project_id, None)]
            self._evict(stale)
        logger.debug('Ledger mutation on project %s evicted %d view(s)', project_id, len(stale))
        return len(stale)

    def _invalidate_company(self, project_id: int, company_id: Optional[int], company_unknown: bool = False) -> int:
        if company_id is None and not company_unknown:
            return 0
        with self._lock:
            if company_id is not None:
                self._generations[('company', company_id)] += 1
            if company_unknown:
                for scope in list(self._generations):
                    if scope[0] == 'company':
                        self._generations[scope] += 1
            stale = [k for k in self._entries
                     if k[1].company_id is not None and k[1].affected_by(project_id, company_id, company_unknown)]
            self._evict(stale)
        logger.debug('Company views for project %s evicted %d view(s)', project_id, len(stale))
        return len(stale)

    def _evict(self, keys) -> None:
        for k in keys:
            del self._entries[k]
        self.stats.invalidations += len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generations[GLOBAL_SCOPE] += 1
            for scope in list(self._generations):
                if scope != GLOBAL_SCOPE:
                    self._generations[scope] += 1

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._entries)

__all__ = [
    'AggregateCache', 'FilterSet', 'ViewResult', 'ViewSpec', 'CacheStats', 'VIEWS',
    'FINANCIAL_SUMMARY', 'CATEGORY_EXPENSES', 'CHART_SERIES', 'PER_PROJECT_ROLLUP',
    'financial_summary', 'category_expenses', 'chart_series', 'per_project_rollup',
]
