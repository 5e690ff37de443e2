import threading
import time
import pytest

from siteledger.errors import LedgerTimeoutError
from siteledger.services.engine import LedgerEngine
from siteledger.services.locks import EntityLocks
from siteledger.services.policy import Actor
from siteledger.services.projects import bounded_call

STAFF = Actor(id=7, role='staff')


def test_lock_timeout_raises_ledger_timeout():
    locks = EntityLocks(timeout=0.05)
    with locks.hold(('transaction', 1)):
        errors = []

        def contender():
            try:
                with locks.hold(('transaction', 1)):
                    pass
            except LedgerTimeoutError as exc:
                errors.append(exc)
        t = threading.Thread(target=contender)
        t.start(); t.join()
    assert len(errors) == 1
    assert isinstance(errors[0], TimeoutError)
    assert errors[0].status_code == 504


def test_different_entities_do_not_block():
    locks = EntityLocks(timeout=0.05)
    with locks.hold(('transaction', 1)):
        with locks.hold(('transaction', 2)):
            assert set(locks.active_keys()) == {('transaction', 1), ('transaction', 2)}
    assert list(locks.active_keys()) == []


def test_bounded_call_times_out():
    with pytest.raises(LedgerTimeoutError):
        bounded_call(time.sleep, 0.5, timeout=0.05, what='slow lookup')


class SlowDirectory:
    def exists(self, project_id):
        time.sleep(0.5)
        return True

    def company_of(self, project_id):
        time.sleep(0.5)
        return None


def test_slow_project_lookup_surfaces_timeout(session_factory, projects):
    engine = LedgerEngine.build(session_factory, projects=SlowDirectory(), lookup_timeout=0.05)
    with pytest.raises(LedgerTimeoutError):
        engine.ledger.create({'kind': 'expense', 'amount': '5', 'project_id': projects['P'], 'date': '2024-01-01'}, STAFF)
    assert engine.ledger.list() == []
