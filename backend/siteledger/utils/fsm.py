from __future__ import annotations
"""Finite state machine utility for enforcing allowed status transitions.

Used by the ledger (Transaction approval status) and the material workflow
(MaterialRequest status).
Usage:
    from siteledger.utils.fsm import TransitionValidator
    TX_FSM = TransitionValidator({
        'pending': {'approved', 'rejected'},
        'approved': {'paid'},
        'rejected': set(),
        'paid': set(),
    }, entity='Transaction')
    TX_FSM.assert_can_transition(current_status, target_status)

Raises InvalidTransitionError if the edge is not in the graph.
"""
from typing import Dict, Set, FrozenSet

from siteledger.errors import InvalidTransitionError


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status', entity: str = 'record'):
        self.graph: Dict[str, FrozenSet[str]] = {k: frozenset(v) for k, v in graph.items()}
        self.field_name = field_name
        self.entity = entity

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, frozenset())

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            raise InvalidTransitionError(
                f"Invalid {self.entity} {self.field_name} transition {current} -> {target}",
                current=current,
                target=target,
            )
        return True

    def is_terminal(self, status: str) -> bool:
        return not self.graph.get(status)

    def as_dict(self) -> Dict[str, list]:
        """Sorted adjacency view, handy for API discovery payloads."""
        return {k: sorted(v) for k, v in self.graph.items()}

__all__ = ['TransitionValidator']
