from __future__ import annotations
"""Typed failures raised by the ledger engine.

Every failure is distinguishable by class so the API layer can render an
actionable message. ``status_code``/``title`` feed the JSON error envelope
produced by the app-level error handler.
"""
from typing import Any, Dict, Optional


class LedgerError(Exception):
    status_code = 500
    title = 'Ledger Error'

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail)
        self.detail = detail
        self.context: Dict[str, Any] = context

    def to_payload(self) -> Dict[str, Any]:
        return {
            'error': {
                'status': self.status_code,
                'title': self.title,
                'kind': type(self).__name__,
                'detail': self.detail,
            }
        }


class InvalidInputError(LedgerError):
    """Malformed amount, quantity, rate or missing required field."""
    status_code = 400
    title = 'Bad Request'


class NotFoundError(LedgerError):
    status_code = 404
    title = 'Not Found'

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f'{entity} {entity_id} not found', entity=entity, entity_id=entity_id)


class InvalidTransitionError(LedgerError):
    status_code = 409
    title = 'Conflict'

    def __init__(self, detail: str, current: Optional[str] = None, target: Optional[str] = None):
        super().__init__(detail, current=current, target=target)
        self.current = current
        self.target = target


class ImmutableStateError(LedgerError):
    """Mutation attempted on a finalized (audit trail) record."""
    status_code = 409
    title = 'Conflict'


class UnknownItemTypeError(LedgerError):
    status_code = 400
    title = 'Bad Request'


class LedgerTimeoutError(LedgerError, TimeoutError):
    """A collaborator (lookup, lock, database) did not answer in time. Retryable."""
    status_code = 504
    title = 'Gateway Timeout'


__all__ = [
    'LedgerError', 'InvalidInputError', 'NotFoundError', 'InvalidTransitionError',
    'ImmutableStateError', 'UnknownItemTypeError', 'LedgerTimeoutError',
]
