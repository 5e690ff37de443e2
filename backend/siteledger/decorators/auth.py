from functools import wraps
from flask import abort
from flask_jwt_extended import verify_jwt_in_request, get_jwt
from siteledger.services.policy import permissions_for


def current_permissions():
    claims = get_jwt()
    perms = set(claims.get('perms', []))
    if not perms and claims.get('role'):
        perms = permissions_for(claims['role'])
    return perms


def require_permissions(*codes: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            perms = current_permissions()
            if not all(c in perms for c in codes):
                abort(403, description='Missing permission')
            return fn(*args, **kwargs)
        return wrapper
    return outer


def current_actor(kind: str = None):
    """Actor for the authenticated caller; auto-approval comes from app policy config."""
    from flask import current_app
    from flask_jwt_extended import get_jwt_identity
    from siteledger.services.policy import Actor, auto_approve_for
    claims = get_jwt()
    role = claims.get('role', 'staff')
    auto = False
    if kind is not None:
        auto = auto_approve_for(
            role, kind,
            current_app.config.get('AUTO_APPROVE_ROLES', []),
            current_app.config.get('AUTO_APPROVE_PAYMENTS', True),
        )
    return Actor(id=int(get_jwt_identity()), role=role, auto_approve=auto)
