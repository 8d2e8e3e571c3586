from __future__ import annotations
from enum import IntEnum
from typing import Optional

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .authz import Base


class Status(IntEnum):
    """Order/event lifecycle status; the value is the fixed row id in ``statuses``."""
    PENDING = 1
    CONFIRMED = 2
    CLOSED = 3
    CANCELLED = 4

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def from_label(cls, label) -> Optional['Status']:
        if not isinstance(label, str):
            return None
        return _BY_LABEL.get(label.strip().lower())

    @classmethod
    def from_id(cls, value) -> Optional['Status']:
        """Exact id match: ints or digit-only strings; floats and bools never match."""
        if isinstance(value, bool):
            return None
        if isinstance(value, str) and value.strip().isdigit():
            value = int(value)
        if not isinstance(value, int):
            return None
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def parse(cls, raw) -> Optional['Status']:
        """Accept either a numeric id or a label."""
        if isinstance(raw, Status):
            return raw
        if isinstance(raw, str) and not raw.strip().isdigit():
            return cls.from_label(raw)
        return cls.from_id(raw)

    def as_json(self):
        return {'id': int(self), 'label': self.label}


_BY_LABEL = {s.label: s for s in Status}


class StatusRow(Base):
    __tablename__ = 'statuses'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    label: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)


def ensure_statuses(session) -> int:
    """Idempotently insert the fixed status rows; returns how many were created."""
    existing = {row.id for row in session.query(StatusRow).all()}
    created = 0
    for status in Status:
        if status.value not in existing:
            session.add(StatusRow(id=status.value, label=status.label))
            created += 1
    session.flush()
    return created


__all__ = ['Status', 'StatusRow', 'ensure_statuses']
