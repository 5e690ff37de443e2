from __future__ import annotations
from typing import Any, Iterable, List, Optional, Tuple
from flask import request, make_response
from siteledger.config.pagination import normalize_pagination
import hashlib
import json


def apply_pagination(rows: List[Any]) -> Tuple[List[Any], int, int, int]:
    limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    total = len(rows)
    return rows[offset:offset + limit], total, limit, offset


def compute_etag(*parts: Any) -> str:
    seed = '|'.join(json.dumps(p, sort_keys=True, default=str) for p in parts)
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }


def make_list_response(rows: Iterable[Any], serialize):
    page, total, limit, offset = apply_pagination(list(rows))
    return build_list_payload([serialize(r) for r in page], total, limit, offset)


def handle_conditional(etag_value: str):
    """Return a 304 response when If-None-Match carries the current ETag, else None."""
    inm = request.headers.get('If-None-Match')
    if inm and etag_value in {tag.strip().strip('"') for tag in inm.split(',')}:
        resp = make_response('', 304)
        resp.headers['ETag'] = etag_value
        return resp
    return None


def make_cached_response(body: Any, etag_value: str, extra_headers: Optional[dict] = None):
    cond = handle_conditional(etag_value)
    if cond:
        return cond
    resp = make_response(body)
    resp.headers['ETag'] = etag_value
    for k, v in (extra_headers or {}).items():
        resp.headers[k] = v
    return resp
