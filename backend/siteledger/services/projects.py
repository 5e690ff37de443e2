from __future__ import annotations
"""Project lookup collaborator.

The ledger only needs two answers about a project: does it exist, and which
company owns it. Any object with ``exists``/``company_of`` satisfies
``ProjectLookup``; ``SqlProjectDirectory`` answers from the ``projects`` table.

``BoundedProjectLookup`` wraps a lookup so every call finishes within a fixed
time budget; expiry raises LedgerTimeoutError and is left to the caller to
retry.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Callable, Optional, Protocol, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from siteledger.errors import LedgerTimeoutError
from siteledger.models.company import Project

logger = logging.getLogger(__name__)

T = TypeVar('T')

_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix='ledger-lookup')


def bounded_call(fn: Callable[..., T], *args: Any, timeout: float, what: str = 'collaborator') -> T:
    future = _executor.submit(fn, *args)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        logger.warning('%s call exceeded %.2fs', what, timeout)
        raise LedgerTimeoutError(f'{what} did not respond within {timeout:g}s')


class ProjectLookup(Protocol):
    def exists(self, project_id: int) -> bool: ...

    def company_of(self, project_id: int) -> Optional[int]: ...


class SqlProjectDirectory:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def exists(self, project_id: int) -> bool:
        with self._session_factory() as session:
            return session.get(Project, project_id) is not None

    def company_of(self, project_id: int) -> Optional[int]:
        with self._session_factory() as session:
            return session.execute(
                select(Project.company_id).where(Project.id == project_id)
            ).scalar_one_or_none()


class BoundedProjectLookup:
    def __init__(self, inner: ProjectLookup, timeout: float = 5.0):
        self.inner = inner
        self.timeout = timeout

    def exists(self, project_id: int) -> bool:
        return bool(bounded_call(self.inner.exists, project_id, timeout=self.timeout, what='project lookup'))

    def company_of(self, project_id: int) -> Optional[int]:
        return bounded_call(self.inner.company_of, project_id, timeout=self.timeout, what='project lookup')

__all__ = ['ProjectLookup', 'SqlProjectDirectory', 'BoundedProjectLookup', 'bounded_call']
