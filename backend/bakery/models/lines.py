"""Line items of an order or event as a tagged union.

Each line references exactly one product kind, so there is never a question of
which foreign key is set. Persisted rows convert to and from these values via
``to_line()`` / ``from_line()`` on the item models.
"""
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar, Dict, Type


@dataclass(frozen=True)
class LineItem:
    product_id: int
    quantity: int
    unit_price: Decimal

    kind: ClassVar[str] = ''
    column: ClassVar[str] = ''

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    def as_json(self):
        return {
            'kind': self.kind,
            'product_id': self.product_id,
            'quantity': self.quantity,
            'unit_price': '{:.2f}'.format(self.unit_price),
            'subtotal': '{:.2f}'.format(self.subtotal),
        }


@dataclass(frozen=True)
class CakeLine(LineItem):
    kind: ClassVar[str] = 'cake'
    column: ClassVar[str] = 'cake_id'


@dataclass(frozen=True)
class TrayLine(LineItem):
    kind: ClassVar[str] = 'tray'
    column: ClassVar[str] = 'tray_id'


@dataclass(frozen=True)
class ArticleLine(LineItem):
    kind: ClassVar[str] = 'article'
    column: ClassVar[str] = 'article_id'


LINE_TYPES: Dict[str, Type[LineItem]] = {cls.kind: cls for cls in (CakeLine, TrayLine, ArticleLine)}


class LineItemRowMixin:
    """Shared conversion for item rows that carry one nullable FK per product kind."""

    LINE_KINDS: ClassVar[tuple] = ()

    def to_line(self) -> LineItem:
        set_kinds = [k for k in self.LINE_KINDS if getattr(self, LINE_TYPES[k].column) is not None]
        if len(set_kinds) != 1:
            raise ValueError(f'{type(self).__name__} {self.id} must reference exactly one product')
        cls = LINE_TYPES[set_kinds[0]]
        return cls(
            product_id=getattr(self, cls.column),
            quantity=self.quantity,
            unit_price=Decimal(self.unit_price),
        )

    @classmethod
    def from_line(cls, line: LineItem, **parent):
        if line.kind not in cls.LINE_KINDS:
            raise ValueError(f'{cls.__name__} does not accept {line.kind} lines')
        return cls(quantity=line.quantity, unit_price=line.unit_price, **{line.column: line.product_id}, **parent)


__all__ = ['LineItem', 'CakeLine', 'TrayLine', 'ArticleLine', 'LINE_TYPES', 'LineItemRowMixin']
