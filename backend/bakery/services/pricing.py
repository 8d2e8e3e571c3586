"""Line pricing for orders and events.

Unit prices are read from the catalog at write time and snapshotted into each
produced line; later catalog price changes never alter an existing aggregate.
Article lines additionally pre-check available stock. The actual debit only
happens on the pending -> confirmed transition (see services.stock).
"""
from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from bakery.models.catalog import Cake, Tray, RentableArticle
from bakery.models.lines import ArticleLine, CakeLine, LineItem, TrayLine
from bakery.utils.errors import BadRequest, Conflict, NotFound
from bakery.utils.validation import parse_money, parse_positive_int, parse_quantity

ZERO = Decimal('0.00')

# accepted spellings of the request keys, first match wins
_ID_KEYS = {
    'cake': ('id', 'cake_id', 'id_torta'),
    'tray': ('id', 'tray_id', 'id_bandeja'),
    'article': ('id', 'article_id', 'id_articulo'),
}
_QTY_KEYS = ('quantity', 'cantidad')


@dataclass(frozen=True)
class PricingResult:
    total: Decimal
    total_items: int
    discount: Decimal
    final_total: Decimal
    lines: List[LineItem] = field(default_factory=list)


def _pick(raw: Mapping[str, Any], keys: Sequence[str]):
    for k in keys:
        if k in raw and raw[k] is not None:
            return raw[k]
    return None


def _parse_request(raw: Any, kind: str):
    if not isinstance(raw, Mapping):
        raise BadRequest(f'Each {kind} line must be an object with id and quantity')
    product_id = parse_positive_int(_pick(raw, _ID_KEYS[kind]), f'{kind} id')
    quantity = parse_quantity(_pick(raw, _QTY_KEYS), f'{kind} quantity')
    return product_id, quantity


def clamp_discount(discount: Any, total: Decimal) -> Decimal:
    """Clamp a requested discount into [0, total]; None means no discount."""
    if discount is None or discount == '':
        return ZERO
    amount = parse_money(discount, 'discount')
    if amount < 0:
        return ZERO
    return min(amount, total)


def compute_totals(
    session,
    cakes: Iterable[Any] = (),
    trays: Iterable[Any] = (),
    articles: Iterable[Any] = (),
    discount: Any = None,
    allow_articles: bool = False,
) -> PricingResult:
    cakes = list(cakes or ())
    trays = list(trays or ())
    articles = list(articles or ())
    if articles and not allow_articles:
        raise BadRequest('Rentable articles are only allowed on events')

    lines: List[LineItem] = []
    for raw in cakes:
        cake_id, qty = _parse_request(raw, 'cake')
        cake = session.get(Cake, cake_id)
        if cake is None:
            raise NotFound(f'Cake {cake_id} not found')
        lines.append(CakeLine(product_id=cake_id, quantity=qty, unit_price=Decimal(cake.price)))
    for raw in trays:
        tray_id, qty = _parse_request(raw, 'tray')
        tray = session.get(Tray, tray_id)
        if tray is None:
            raise NotFound(f'Tray {tray_id} not found')
        lines.append(TrayLine(product_id=tray_id, quantity=qty, unit_price=Decimal(tray.price)))
    for raw in articles:
        article_id, qty = _parse_request(raw, 'article')
        article = session.get(RentableArticle, article_id)
        if article is None:
            raise NotFound(f'Article {article_id} not found')
        if qty > article.stock_available:
            raise Conflict(
                f'Insufficient stock for article "{article.name}": requested {qty}, available {article.stock_available}',
                error_code='INSUFFICIENT_STOCK',
            )
        lines.append(ArticleLine(product_id=article_id, quantity=qty, unit_price=Decimal(article.rental_price)))

    total = sum((line.subtotal for line in lines), ZERO)
    total_items = sum(line.quantity for line in lines)
    applied = clamp_discount(discount, total)
    final_total = max(total - applied, ZERO)
    return PricingResult(total=total, total_items=total_items, discount=applied, final_total=final_total, lines=lines)


__all__ = ['PricingResult', 'compute_totals', 'clamp_discount']
