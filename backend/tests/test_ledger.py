from datetime import date
from decimal import Decimal
import pytest
from sqlalchemy import select

from siteledger.errors import InvalidInputError, InvalidTransitionError, ImmutableStateError, NotFoundError
from siteledger.models import AuditLog, Transaction
from siteledger.services.events import LedgerMutated
from siteledger.services.policy import Actor

STAFF = Actor(id=7, role='staff')
MANAGER = Actor(id=8, role='manager')
ADMIN = Actor(id=1, role='admin', auto_approve=True)


def _expense(ledger_engine, project_id, amount='500', **extra):
    data = {'kind': 'expense', 'amount': amount, 'project_id': project_id, 'date': '2024-03-10', 'category': 'travel'}
    data.update(extra)
    return ledger_engine.ledger.create(data, STAFF)


def _audit_actions(session_factory, tx_id):
    with session_factory() as session:
        return list(session.execute(
            select(AuditLog.action).where(AuditLog.entity == 'Transaction', AuditLog.entity_id == str(tx_id)).order_by(AuditLog.id)
        ).scalars())


def test_create_starts_pending_and_stores_cents(ledger_engine, projects):
    tx = _expense(ledger_engine, projects['P'], amount='1234.50')
    assert tx.approval_status == 'pending'
    assert tx.amount_cents == 123450
    assert tx.amount == Decimal('1234.50')
    assert tx.date == date(2024, 3, 10)
    assert tx.created_by == STAFF.id


def test_payment_never_carries_category(ledger_engine, projects):
    tx = ledger_engine.ledger.create({'kind': 'payment', 'amount': 100, 'project_id': projects['P'], 'date': '2024-03-10', 'category': 'travel'}, STAFF)
    assert tx.category is None


def test_auto_approved_creation(ledger_engine, projects):
    tx = ledger_engine.ledger.create({'kind': 'expense', 'amount': '10', 'project_id': projects['P'], 'date': '2024-03-10'}, ADMIN)
    assert tx.approval_status == 'approved'
    assert tx.approved_by == ADMIN.id


@pytest.mark.parametrize('payload', [
    {'kind': 'refund', 'amount': '10', 'date': '2024-01-01'},
    {'kind': 'expense', 'amount': '0', 'date': '2024-01-01'},
    {'kind': 'expense', 'amount': '-5', 'date': '2024-01-01'},
    {'kind': 'expense', 'amount': '1.001', 'date': '2024-01-01'},
    {'kind': 'expense', 'amount': '10', 'date': 'not-a-date'},
    {'kind': 'expense', 'amount': '10'},
])
def test_create_rejects_invalid_input(ledger_engine, projects, payload):
    payload = dict(payload, project_id=projects['P'])
    with pytest.raises(InvalidInputError):
        ledger_engine.ledger.create(payload, STAFF)
    assert ledger_engine.ledger.list(project_id=projects['P']) == []


def test_unknown_project_is_not_found(ledger_engine):
    with pytest.raises(NotFoundError):
        ledger_engine.ledger.create({'kind': 'expense', 'amount': '10', 'project_id': 9999, 'date': '2024-01-01'}, STAFF)


def test_full_lifecycle_with_audit(ledger_engine, projects, session_factory):
    tx = _expense(ledger_engine, projects['P'])
    approved = ledger_engine.ledger.approve(tx.id, MANAGER)
    assert approved.approval_status == 'approved'
    assert approved.approved_by == MANAGER.id
    paid = ledger_engine.ledger.mark_paid(tx.id, MANAGER)
    assert paid.approval_status == 'paid'
    assert _audit_actions(session_factory, tx.id) == ['TX.CREATE', 'TX.APPROVE', 'TX.PAY']


def test_reject_on_approved_leaves_state_unchanged(ledger_engine, projects):
    tx = _expense(ledger_engine, projects['P'])
    ledger_engine.ledger.approve(tx.id, MANAGER)
    with pytest.raises(InvalidTransitionError):
        ledger_engine.ledger.reject(tx.id, MANAGER, 'too late')
    current = ledger_engine.ledger.get(tx.id)
    assert current.approval_status == 'approved'
    assert current.rejection_reason is None


def test_reject_requires_reason_and_is_terminal(ledger_engine, projects):
    tx = _expense(ledger_engine, projects['P'])
    with pytest.raises(InvalidInputError):
        ledger_engine.ledger.reject(tx.id, MANAGER, '   ')
    rejected = ledger_engine.ledger.reject(tx.id, MANAGER, 'duplicate receipt')
    assert rejected.rejection_reason == 'duplicate receipt'
    with pytest.raises(InvalidTransitionError):
        ledger_engine.ledger.approve(tx.id, MANAGER)
    with pytest.raises(InvalidTransitionError):
        ledger_engine.ledger.mark_paid(tx.id, MANAGER)


def test_pay_requires_approval(ledger_engine, projects):
    tx = _expense(ledger_engine, projects['P'])
    with pytest.raises(InvalidTransitionError):
        ledger_engine.ledger.mark_paid(tx.id, MANAGER)
    assert ledger_engine.ledger.get(tx.id).approval_status == 'pending'


@pytest.mark.parametrize('finalize', ['approve', 'pay'])
def test_delete_of_finalized_record_is_refused(ledger_engine, projects, finalize):
    tx = _expense(ledger_engine, projects['P'])
    ledger_engine.ledger.approve(tx.id, MANAGER)
    if finalize == 'pay':
        ledger_engine.ledger.mark_paid(tx.id, MANAGER)
    before = ledger_engine.ledger.get(tx.id)
    with pytest.raises(ImmutableStateError):
        ledger_engine.ledger.delete(tx.id, MANAGER)
    after = ledger_engine.ledger.get(tx.id)
    assert (after.approval_status, after.amount_cents) == (before.approval_status, before.amount_cents)


def test_delete_pending(ledger_engine, projects, session_factory):
    tx = _expense(ledger_engine, projects['P'])
    ledger_engine.ledger.delete(tx.id, STAFF)
    with pytest.raises(NotFoundError):
        ledger_engine.ledger.get(tx.id)
    assert _audit_actions(session_factory, tx.id)[-1] == 'TX.DELETE'


def test_update_pending_moves_project_and_notifies_both(ledger_engine, projects):
    seen = []
    ledger_engine.events.subscribe(LedgerMutated, seen.append)
    tx = _expense(ledger_engine, projects['P'])
    seen.clear()
    updated = ledger_engine.ledger.update(tx.id, {'amount': '750.25', 'project_id': projects['Q']}, STAFF)
    assert updated.amount_cents == 75025
    assert updated.project_id == projects['Q']
    assert [e.project_id for e in seen] == [projects['P'], projects['Q']]


def test_update_rejects_unknown_fields_and_finalized_records(ledger_engine, projects):
    tx = _expense(ledger_engine, projects['P'])
    with pytest.raises(InvalidInputError):
        ledger_engine.ledger.update(tx.id, {'approval_status': 'paid'}, STAFF)
    ledger_engine.ledger.approve(tx.id, MANAGER)
    with pytest.raises(ImmutableStateError):
        ledger_engine.ledger.update(tx.id, {'amount': '1'}, STAFF)
    assert ledger_engine.ledger.get(tx.id).amount_cents == 50000


def test_events_published_after_commit(ledger_engine, projects):
    seen = []
    ledger_engine.events.subscribe(LedgerMutated, seen.append)
    tx = _expense(ledger_engine, projects['P'])
    ledger_engine.ledger.approve(tx.id, MANAGER)
    assert [(e.project_id, e.kind, e.transaction_id) for e in seen] == [
        (projects['P'], 'expense', tx.id), (projects['P'], 'expense', tx.id),
    ]
    with pytest.raises(InvalidTransitionError):
        ledger_engine.ledger.approve(tx.id, MANAGER)
    assert len(seen) == 2


def test_failing_subscriber_does_not_undo_mutation(ledger_engine, projects):
    def boom(_event):
        raise RuntimeError('subscriber down')
    ledger_engine.events.subscribe(LedgerMutated, boom)
    tx = _expense(ledger_engine, projects['P'])
    assert ledger_engine.ledger.get(tx.id).approval_status == 'pending'


def test_list_filters_and_order(ledger_engine, projects):
    a = _expense(ledger_engine, projects['P'], date='2024-01-05')
    b = ledger_engine.ledger.create({'kind': 'payment', 'amount': '900', 'project_id': projects['P'], 'date': '2024-02-01'}, STAFF)
    _expense(ledger_engine, projects['Q'], date='2024-01-06')
    assert [t.id for t in ledger_engine.ledger.list(project_id=projects['P'])] == [b.id, a.id]
    assert [t.id for t in ledger_engine.ledger.list(project_id=projects['P'], kind='expense')] == [a.id]
    assert [t.id for t in ledger_engine.ledger.list(start_date=date(2024, 1, 6), end_date=date(2024, 1, 31))] != []
    with pytest.raises(InvalidInputError):
        ledger_engine.ledger.list(status='archived')
    assert all(t.kind == Transaction.KIND_EXPENSE for t in ledger_engine.ledger.list(kind='expense'))
