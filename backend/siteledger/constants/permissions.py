"""Central enum-like definitions to avoid typos in permission/service strings.
Extend cautiously; never rename codes silently; add new ones and retire old ones in a release note.
"""
from __future__ import annotations
from typing import List, Dict

SERVICES = ['FIN', 'MAT', 'APR', 'RPT', 'CAT']

SERVICE_ACTIONS = {
    'FIN': ['READ', 'CREATE', 'UPDATE', 'DELETE', 'APPROVE', 'PAY'],
    'MAT': ['READ', 'REQUEST', 'PURCHASE', 'APPROVE', 'DELETE'],
    'APR': ['READ'],
    'RPT': ['READ'],
    'CAT': ['MANAGE'],
}


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            codes.append(f"{svc}.{act}")
    return codes

ALL_PERMISSION_CODES = build_all_permission_codes()

ROLE_PRESETS: Dict[str, List[str]] = {
    'staff': ['FIN.READ', 'FIN.CREATE', 'FIN.UPDATE', 'MAT.READ', 'MAT.REQUEST', 'RPT.READ'],
    # Manager: reviews and settles, but cannot delete finalized-adjacent records
    'manager': [
        'FIN.READ', 'FIN.CREATE', 'FIN.UPDATE', 'FIN.APPROVE', 'FIN.PAY',
        'MAT.READ', 'MAT.REQUEST', 'MAT.PURCHASE', 'MAT.APPROVE',
        'APR.READ', 'RPT.READ', 'CAT.MANAGE',
    ],
    'admin': ['*'],
}


def expand_role(role: str) -> List[str]:
    codes = ROLE_PRESETS.get(role, [])
    if '*' in codes:
        return list(ALL_PERMISSION_CODES)
    return list(codes)
