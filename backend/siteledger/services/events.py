from __future__ import annotations
"""In-process event bus for ledger and workflow mutations.

Events are published only after the owning unit of work commits, so a
subscriber never hears about state that could still be rolled back.

Subscriber failures are logged and reported but never break dispatch to the
remaining subscribers and never undo the committed mutation.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerMutated:
    """A Transaction belonging to ``project_id`` was created/changed/deleted."""
    project_id: int
    kind: str
    transaction_id: Optional[int] = None
    action: str = ''


@dataclass(frozen=True)
class MaterialRequestMutated:
    project_id: int
    request_id: int
    status: str
    action: str = ''


@dataclass
class DispatchResult:
    event_type: str
    notified: int = 0
    failed: int = 0
    failures: List[Dict[str, Any]] = field(default_factory=list)


Handler = Callable[[Any], None]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[Type, List[Handler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: Type, handler: Handler) -> None:
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: Type, handler: Handler) -> None:
        with self._lock:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, event: Any) -> DispatchResult:
        event_type = type(event)
        with self._lock:
            handlers = list(self._subscribers.get(event_type, []))
        result = DispatchResult(event_type=event_type.__name__)
        for handler in handlers:
            name = getattr(handler, '__qualname__', repr(handler))
            try:
                handler(event)
                result.notified += 1
            except Exception as exc:
                result.failed += 1
                result.failures.append({'handler': name, 'error': str(exc), 'error_type': type(exc).__name__})
                logger.error('Subscriber %s failed for %s: %s', name, result.event_type, exc, exc_info=True)
        logger.debug('Dispatched %s: %d notified, %d failed', result.event_type, result.notified, result.failed)
        return result

__all__ = ['LedgerMutated', 'MaterialRequestMutated', 'EventBus', 'DispatchResult']
