from __future__ import annotations
from collections import defaultdict
from typing import Dict

from flask import current_app, has_app_context

from bakery.models.catalog import RentableArticle
from bakery.models.lines import ArticleLine
from bakery.utils.errors import Conflict, NotFound

DEBIT = -1
CREDIT = 1


def article_quantities(event) -> Dict[int, int]:
    """Sum article quantities per article across the event's lines."""
    totals: Dict[int, int] = defaultdict(int)
    for line in event.lines():
        if isinstance(line, ArticleLine):
            totals[line.product_id] += line.quantity
    return dict(totals)


def adjust_stock_for_event(session, event, direction: int) -> Dict[int, int]:
    """Debit (-1) or credit (+1) available stock for every article line of ``event``.

    All articles are validated before any is written, so a Conflict leaves
    stock untouched. Credits are clamped to stock_total. Does not commit.
    Returns {article_id: new_available}.
    """
    if direction not in (DEBIT, CREDIT):
        raise ValueError('direction must be +1 or -1')
    quantities = article_quantities(event)
    if not quantities:
        return {}

    articles = {}
    for article_id in quantities:
        article = session.get(RentableArticle, article_id)
        if article is None:
            raise NotFound(f'Article {article_id} referenced by event {event.id} not found')
        articles[article_id] = article

    planned: Dict[int, int] = {}
    for article_id, qty in quantities.items():
        article = articles[article_id]
        new_available = article.stock_available + direction * qty
        if direction == DEBIT and new_available < 0:
            raise Conflict(
                f'Insufficient stock for article "{article.name}": required {qty}, available {article.stock_available}',
                error_code='INSUFFICIENT_STOCK',
            )
        if direction == CREDIT:
            new_available = min(new_available, article.stock_total)
        planned[article_id] = new_available

    for article_id, new_available in planned.items():
        articles[article_id].stock_available = new_available
        if has_app_context():
            current_app.logger.info(
                'stock %s article=%s qty=%s available=%s event=%s',
                'debit' if direction == DEBIT else 'credit', article_id, quantities[article_id], new_available, event.id,
            )
    session.flush()
    return planned


__all__ = ['adjust_stock_for_event', 'article_quantities', 'DEBIT', 'CREDIT']
