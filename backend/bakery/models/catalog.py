from __future__ import annotations
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from .authz import Base


class Customer(Base):
    __tablename__ = 'customers'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32))
    address: Mapped[Optional[str]] = mapped_column(String(255))


class Cake(Base):
    __tablename__ = 'cakes'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)


class Tray(Base):
    __tablename__ = 'trays'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)


class RentableArticle(Base):
    """Article lent out for events; available stock moves with event status."""
    __tablename__ = 'rentable_articles'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(64))
    reusable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    stock_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stock_available: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    rental_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)

    __table_args__ = (
        CheckConstraint('stock_available >= 0 AND stock_available <= stock_total', name='ck_article_stock_bounds'),
    )
