"""Pagination calculator."""

import math
from typing import Any

from src.models.pagination import Pagination
from src.utils.parsing import parse_int

MIN_LIMIT = 1
MAX_LIMIT = 200
DEFAULT_LIMIT = 50


def calculate_pagination(total: Any, page: Any = 1, limit: Any = DEFAULT_LIMIT) -> Pagination:
    """
    Normalize client paging input against a result count.

    Never raises: unparseable limits fall back to the lower clamp bound and
    unparseable pages to the first page.
    """
    total = max(0, parse_int(total, 0))

    if limit is None:
        limit = DEFAULT_LIMIT
    parsed_limit = min(max(parse_int(limit, MIN_LIMIT), MIN_LIMIT), MAX_LIMIT)

    if page is None:
        page = 1
    parsed_page = max(1, parse_int(page, 1))

    pages = math.ceil(total / parsed_limit)

    return Pagination(
        limit=parsed_limit,
        page=parsed_page,
        pages=pages,
        total=total,
        prev_page=parsed_page - 1 if parsed_page > 1 else None,
        next_page=parsed_page + 1 if parsed_page < pages else None,
        skip=max(0, (parsed_page - 1) * parsed_limit),
    )
