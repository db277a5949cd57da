# groundops_api/common/paging.py
import math

from flask import request
from sqlalchemy import asc, desc

DEFAULT_PAGE = 1
DEFAULT_SIZE = 20
MAX_SIZE = 100


def page_limit(default_size=DEFAULT_SIZE):
    try:
        page = max(int(request.args.get("page", DEFAULT_PAGE)), 1)
    except Exception:
        page = DEFAULT_PAGE
    raw = request.args.get("size", request.args.get("limit", default_size))
    try:
        size = max(1, min(int(raw), MAX_SIZE))
    except Exception:
        size = default_size
    return page, size


def sort_params(raw: str | None, allowed: dict[str, object]):
    """
    allowed: {"date": Model.date, "created_at": Model.created_at, ...}
    "date,-created_at"  => returns list of (column, asc:bool)
    Unknown keys ignored.
    """
    items = []
    for part in [p.strip() for p in (raw or "").split(",") if p.strip()]:
        asc_order = True
        key = part
        if part.startswith("-"):
            asc_order = False
            key = part[1:]
        col = allowed.get(key)
        if col is not None:
            items.append((col, asc_order))
    return items


def apply_sort(query, sorts, default):
    for col, asc_order in sorts or default:
        query = query.order_by(asc(col) if asc_order else desc(col))
    return query


def pagination_meta(page: int, size: int, total: int) -> dict:
    return {
        "currentPage": page,
        "totalPages": math.ceil(total / size) if size else 0,
        "totalRecords": total,
        "hasNext": page * size < total,
        "hasPrev": page > 1,
    }


def paginate(query, page: int, size: int):
    """Returns (items, pagination meta) for a 1-based page."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * size).limit(size).all()
    return items, pagination_meta(page, size, total)
