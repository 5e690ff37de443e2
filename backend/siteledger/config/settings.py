from __future__ import annotations
"""Environment-driven defaults.

Values come from the process environment (``.env`` is loaded by ``create_app``)
and may be overridden per app through ``create_app(config)``.
"""
import os
from typing import Any, Dict, List


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    return float(raw)


def _list_env(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [part.strip() for part in raw.split(',') if part.strip()]


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def load_settings() -> Dict[str, Any]:
    return {
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET_KEY', 'dev-secret'),
        'DATABASE_URL': os.getenv('DATABASE_URL', 'sqlite:///dev.db'),
        # Bounded waits for collaborators; expiry surfaces as LedgerTimeoutError
        'LOOKUP_TIMEOUT_SECONDS': _float_env('LOOKUP_TIMEOUT_SECONDS', 5.0),
        'LOCK_TIMEOUT_SECONDS': _float_env('LOCK_TIMEOUT_SECONDS', 10.0),
        'DB_BUSY_TIMEOUT_SECONDS': _float_env('DB_BUSY_TIMEOUT_SECONDS', 5.0),
        'AUTO_APPROVE_ROLES': _list_env('AUTO_APPROVE_ROLES', ['admin']),
        'AUTO_APPROVE_PAYMENTS': _bool_env('AUTO_APPROVE_PAYMENTS', True),
    }

__all__ = ['load_settings']
