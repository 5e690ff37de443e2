from __future__ import annotations
from typing import Any, Dict, Iterable, Optional
from sqlalchemy.orm import Session

from siteledger.models.audit import AuditLog


def add_audit(session: Session, actor, action: str, entity: Optional[str] = None, entity_id: Optional[Any] = None, meta: Optional[Dict[str, Any]] = None):
    """Persist an audit log entry within the caller's unit of work.

    Parameters:
      actor: the Actor performing the change (id and role are stamped)
      action: short action code e.g. TX.CREATE, TX.APPROVE, MR.REJECT
      entity: optional entity name (Transaction, MaterialPurchase, ...)
      entity_id: optional primary key
      meta: additional JSON-safe dictionary (will be shallow copied)
    """
    log = AuditLog(
        actor_user_id=actor.id,
        actor_role=actor.role,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=dict(meta or {}),
    )
    session.add(log)
    # No commit here; the unit of work controls durability.
    return log


def diff(before: Dict[str, Any], after: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Before/after pairs for every key whose value changed."""
    changes = {}
    for k in keys:
        if before.get(k) != after.get(k):
            changes[k] = {'before': before.get(k), 'after': after.get(k)}
    return changes

__all__ = ['add_audit', 'diff']
