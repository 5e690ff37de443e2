from __future__ import annotations
"""Identity context and approval policy.

The engine never checks permissions itself; it only stamps the acting user on
records. Whether a new record skips the approval queue is decided here, from
configuration, and handed to the engine as ``Actor.auto_approve``.
"""
from dataclasses import dataclass, replace
from typing import Iterable, Set

from siteledger.constants.permissions import expand_role

ROLE_ADMIN = 'admin'
ROLE_MANAGER = 'manager'
ROLE_STAFF = 'staff'


@dataclass(frozen=True)
class Actor:
    id: int
    role: str = ROLE_STAFF
    auto_approve: bool = False

    def with_auto_approve(self, value: bool) -> 'Actor':
        return replace(self, auto_approve=value)


SYSTEM_ACTOR = Actor(id=0, role='system')


def permissions_for(role: str) -> Set[str]:
    return set(expand_role(role))


def auto_approve_for(role: str, kind: str, auto_roles: Iterable[str], auto_payments: bool = True) -> bool:
    """Expenses skip review only for privileged roles; payments per configuration."""
    if role in set(auto_roles):
        return True
    return kind == 'payment' and auto_payments

__all__ = ['Actor', 'SYSTEM_ACTOR', 'ROLE_ADMIN', 'ROLE_MANAGER', 'ROLE_STAFF', 'permissions_for', 'auto_approve_for']
