from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from math import ceil
from typing import Any, Callable, Optional, Tuple

from flask import request
from sqlalchemy.orm import Query

from bakery.config.pagination import normalize_page


def apply_pagination(q: Query, default_size: Optional[int] = None) -> Tuple[Query, int, int, int]:
    """Page a query from ?page=&page_size= query args; returns (paged_q, total, page, page_size)."""
    kwargs = {'default_size': default_size} if default_size else {}
    page, page_size = normalize_page(request.args.get('page'), request.args.get('page_size'), **kwargs)
    total = q.count()
    return q.offset((page - 1) * page_size).limit(page_size), total, page, page_size


def build_list_payload(rows: list, total: int, page: int, page_size: int):
    return {
        'data': rows,
        'total_pages': ceil(total / page_size) if page_size else 0,
        'current_page': page,
        'page_size': page_size,
        'total_items': total,
    }


def paginate(q: Query, serializer: Callable[[Any], dict], default_size: Optional[int] = None):
    paged_q, total, page, page_size = apply_pagination(q, default_size)
    return build_list_payload([serializer(r) for r in paged_q.all()], total, page, page_size)


def money(value: Optional[Decimal]) -> Optional[str]:
    """Render money as a two-decimal string (e.g. "1500.00")."""
    if value is None:
        return None
    return '{:.2f}'.format(Decimal(value))


def iso(value: Optional[Any]) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


__all__ = ['apply_pagination', 'build_list_payload', 'paginate', 'money', 'iso']
