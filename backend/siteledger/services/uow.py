from __future__ import annotations
"""Unit of work over a SQLAlchemy session.

``with unit_of_work(Session) as session:`` commits on clean exit and rolls back
everything on any exception, so multi-record writes are all-or-nothing.
Database lock/busy timeouts are re-raised as LedgerTimeoutError.
"""
from contextlib import contextmanager
from typing import Callable, Iterator

from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from siteledger.errors import LedgerTimeoutError

_TIMEOUT_MARKERS = ('database is locked', 'lock timeout', 'statement timeout', 'canceling statement')


def _is_timeout(exc: Exception) -> bool:
    if isinstance(exc, PoolTimeoutError):
        return True
    text = str(getattr(exc, 'orig', exc)).lower()
    return any(marker in text for marker in _TIMEOUT_MARKERS)


@contextmanager
def unit_of_work(session_factory: Callable[[], Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
        session.commit()
    except (OperationalError, PoolTimeoutError) as exc:
        session.rollback()
        if _is_timeout(exc):
            raise LedgerTimeoutError('Persistence timed out') from exc
        raise
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def read_session(session_factory: Callable[[], Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    except (OperationalError, PoolTimeoutError) as exc:
        if _is_timeout(exc):
            raise LedgerTimeoutError('Persistence timed out') from exc
        raise
    finally:
        session.close()

__all__ = ['unit_of_work', 'read_session']
