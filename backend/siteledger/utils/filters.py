from __future__ import annotations
from typing import Any, Dict

from siteledger.errors import InvalidInputError


def parse_filters(specs: Dict[str, Dict[str, Any]], params: Dict[str, Any]) -> Dict[str, Any]:
    """Generic query-arg parser.

    specs: { param_name: { 'coerce': type/func, 'validate': callable(optional), 'dest': kwarg name(optional) } }
    Returns keyword arguments for a service call; absent params are skipped.
    """
    out: Dict[str, Any] = {}
    for name, meta in specs.items():
        if name not in params or params[name] in (None, ''):
            continue
        val = params[name]
        if 'coerce' in meta:
            try:
                val = meta['coerce'](val)
            except InvalidInputError:
                raise
            except Exception:
                raise InvalidInputError(f'{name} invalid')
        if 'validate' in meta and not meta['validate'](val):
            raise InvalidInputError(f'{name} invalid')
        out[meta.get('dest', name)] = val
    return out
