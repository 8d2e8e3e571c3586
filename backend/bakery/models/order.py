from __future__ import annotations
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from .authz import Base
from .lines import LineItemRowMixin
from .status import Status


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def one_product_check(*columns: str) -> str:
    """SQL expression true when exactly one of the product FK columns is set."""
    return ' + '.join(f'(CASE WHEN {c} IS NULL THEN 0 ELSE 1 END)' for c in columns) + ' = 1'


class AggregateHeaderMixin:
    """Columns shared by order and event headers."""
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey('customers.id'), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=text('CURRENT_TIMESTAMP'))
    delivery_date: Mapped[date] = mapped_column(Date, nullable=False)
    delivery_type: Mapped[str] = mapped_column(String(32), nullable=False)
    delivery_address: Mapped[Optional[str]] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    item_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    final_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    status_id: Mapped[int] = mapped_column(ForeignKey('statuses.id'), nullable=False, default=int(Status.PENDING), index=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    @declared_attr
    def status_row(cls):
        return relationship('StatusRow', lazy='joined')

    @declared_attr
    def customer(cls):
        return relationship('Customer', lazy='joined')

    @property
    def status_label(self) -> Optional[str]:
        return self.status_row.label if self.status_row is not None else None

    def lines(self):
        return [item.to_line() for item in self.items]


class Order(AggregateHeaderMixin, Base):
    __tablename__ = 'orders'
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan', order_by='OrderItem.id')


class OrderItem(LineItemRowMixin, Base):
    __tablename__ = 'order_items'
    LINE_KINDS = ('cake', 'tray')
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    cake_id: Mapped[Optional[int]] = mapped_column(ForeignKey('cakes.id'))
    tray_id: Mapped[Optional[int]] = mapped_column(ForeignKey('trays.id'))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    order = relationship('Order', back_populates='items')

    __table_args__ = (
        CheckConstraint(one_product_check('cake_id', 'tray_id'), name='ck_order_item_one_product'),
        CheckConstraint('quantity > 0', name='ck_order_item_quantity'),
    )
