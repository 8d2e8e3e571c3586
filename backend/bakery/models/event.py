from __future__ import annotations
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .authz import Base
from .lines import LineItemRowMixin
from .order import AggregateHeaderMixin, one_product_check


class Event(AggregateHeaderMixin, Base):
    """Catering event: like an order but may also rent articles."""
    __tablename__ = 'events'
    items = relationship('EventItem', back_populates='event', cascade='all, delete-orphan', order_by='EventItem.id')


class EventItem(LineItemRowMixin, Base):
    __tablename__ = 'event_items'
    LINE_KINDS = ('cake', 'tray', 'article')
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey('events.id', ondelete='CASCADE'), nullable=False, index=True)
    cake_id: Mapped[Optional[int]] = mapped_column(ForeignKey('cakes.id'))
    tray_id: Mapped[Optional[int]] = mapped_column(ForeignKey('trays.id'))
    article_id: Mapped[Optional[int]] = mapped_column(ForeignKey('rentable_articles.id'), index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    event = relationship('Event', back_populates='items')

    __table_args__ = (
        CheckConstraint(one_product_check('cake_id', 'tray_id', 'article_id'), name='ck_event_item_one_product'),
        CheckConstraint('quantity > 0', name='ck_event_item_quantity'),
    )
