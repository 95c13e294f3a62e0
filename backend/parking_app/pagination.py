from __future__ import annotations

import math
from typing import Sequence

from flask import current_app


def parse_page_args(page, page_size, default_page_size: int) -> tuple[int, int]:
    """Coerce raw query values; anything unparsable falls back to defaults."""
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    try:
        page_size = int(page_size)
    except (TypeError, ValueError):
        page_size = default_page_size
    max_size = current_app.config.get("MAX_PAGE_SIZE", 100)
    return max(1, page), min(max(1, page_size), max_size)


def paginate(items: Sequence, page: int, page_size: int) -> tuple[list, dict]:
    """
    Slice one page out of an already filtered and sorted sequence.

    The requested page is clamped to [1, totalPages]; totalPages is at
    least 1 so an empty result still reports page 1 of 1.
    """
    total = len(items)
    total_pages = max(1, math.ceil(total / page_size))
    page = min(max(1, page), total_pages)
    start = (page - 1) * page_size
    return list(items[start:start + page_size]), {
        "page": page,
        "pageSize": page_size,
        "total": total,
        "totalPages": total_pages,
        "hasPrev": page > 1,
        "hasNext": page < total_pages,
    }
