from __future__ import annotations
"""Wires the ledger components around one database and one event bus."""
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from siteledger.services.aggregates import AggregateCache
from siteledger.services.approvals import ApprovalOrchestrator
from siteledger.services.events import EventBus
from siteledger.services.ledger import TransactionLedger
from siteledger.services.locks import EntityLocks
from siteledger.services.materials import MaterialWorkflow
from siteledger.services.projects import BoundedProjectLookup, ProjectLookup, SqlProjectDirectory


def build_db_engine(db_url: str, busy_timeout: float = 5.0) -> Engine:
    if db_url.startswith('sqlite'):
        connect_args = {'check_same_thread': False, 'timeout': busy_timeout}
        if db_url.endswith(':memory:'):
            # Ensure a single shared in-memory SQLite database across all sessions
            engine = create_engine(db_url, echo=False, future=True, connect_args=connect_args, poolclass=StaticPool)
        else:
            engine = create_engine(db_url, echo=False, future=True, connect_args=connect_args)

        @event.listens_for(engine, 'connect')
        def _enable_fk(dbapi_conn, _record):  # pragma: no cover - driver hook
            cur = dbapi_conn.cursor()
            cur.execute('PRAGMA foreign_keys=ON')
            cur.close()
        return engine
    return create_engine(db_url, echo=False, future=True, pool_timeout=busy_timeout)


def make_session_factory(engine: Engine) -> Callable[[], Session]:
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@dataclass
class LedgerEngine:
    session_factory: Callable[[], Session]
    events: EventBus
    locks: EntityLocks
    projects: ProjectLookup
    ledger: TransactionLedger
    materials: MaterialWorkflow
    approvals: ApprovalOrchestrator
    aggregates: AggregateCache

    @classmethod
    def build(cls, session_factory: Callable[[], Session], projects: Optional[ProjectLookup] = None,
              lookup_timeout: float = 5.0, lock_timeout: float = 10.0,
              today: Callable[[], date] = date.today) -> 'LedgerEngine':
        events = EventBus()
        locks = EntityLocks(timeout=lock_timeout)
        lookup = BoundedProjectLookup(projects or SqlProjectDirectory(session_factory), timeout=lookup_timeout)
        ledger = TransactionLedger(session_factory, lookup, events, locks)
        materials = MaterialWorkflow(session_factory, ledger, events, locks)
        approvals = ApprovalOrchestrator(session_factory, ledger, materials)
        aggregates = AggregateCache(session_factory, lookup, today=today)
        aggregates.attach(events)
        return cls(session_factory, events, locks, lookup, ledger, materials, approvals, aggregates)

    @classmethod
    def from_settings(cls, settings: Dict[str, Any], engine: Optional[Engine] = None) -> 'LedgerEngine':
        engine = engine or build_db_engine(settings['DATABASE_URL'], settings.get('DB_BUSY_TIMEOUT_SECONDS', 5.0))
        return cls.build(
            make_session_factory(engine),
            lookup_timeout=settings.get('LOOKUP_TIMEOUT_SECONDS', 5.0),
            lock_timeout=settings.get('LOCK_TIMEOUT_SECONDS', 10.0),
        )

__all__ = ['LedgerEngine', 'build_db_engine', 'make_session_factory']
