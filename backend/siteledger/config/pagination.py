from __future__ import annotations
from typing import Optional, Tuple

from siteledger.errors import InvalidInputError

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


def normalize_pagination(limit_raw: Optional[str], offset_raw: Optional[str]) -> Tuple[int, int]:
    """Clamp ``limit`` into [1, MAX_PAGE_SIZE]; a negative offset is an input error."""
    try:
        limit = DEFAULT_PAGE_SIZE if limit_raw in (None, '') else int(limit_raw)
        offset = 0 if offset_raw in (None, '') else int(offset_raw)
    except ValueError:
        raise InvalidInputError('limit and offset must be integers')
    if offset < 0:
        raise InvalidInputError('offset must be non-negative')
    return max(1, min(limit, MAX_PAGE_SIZE)), offset
