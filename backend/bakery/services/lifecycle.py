"""Order and event lifecycle.

Both aggregates share one workflow: create and edit while pending (items are
re-priced and replaced wholesale), move forward through the status machine,
hard-delete while pending. Every mutation is a single session commit; on any
error the session is rolled back so header, items and stock stay consistent.

Events additionally rent articles: stock is debited on pending -> confirmed and
credited back when a confirmed event is closed or cancelled.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Mapping, Optional, Type

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from bakery import get_db
from bakery.models.catalog import Customer
from bakery.models.event import Event, EventItem
from bakery.models.order import Order, OrderItem, utcnow
from bakery.models.status import Status, StatusRow
from bakery.services.pricing import PricingResult, compute_totals
from bakery.services.stock import CREDIT, DEBIT, adjust_stock_for_event
from bakery.utils.errors import AppError, BadRequest, NotFound, assert_found, from_db_error
from bakery.utils.fsm import TransitionValidator
from bakery.utils.listing import iso, money, paginate
from bakery.utils.validation import parse_iso_date, parse_positive_int, sanitize_string

ORDER_TRANSITIONS = TransitionValidator({
    Status.PENDING: {Status.CONFIRMED, Status.CANCELLED},
    Status.CONFIRMED: {Status.CLOSED},
    Status.CLOSED: set(),
    Status.CANCELLED: set(),
})

EVENT_TRANSITIONS = TransitionValidator({
    Status.PENDING: {Status.CONFIRMED, Status.CANCELLED},
    Status.CONFIRMED: {Status.CLOSED, Status.CANCELLED},
    Status.CLOSED: set(),
    Status.CANCELLED: set(),
})


@dataclass(frozen=True)
class HeaderInput:
    customer_id: int
    delivery_date: date
    delivery_type: str
    delivery_address: Optional[str]
    notes: Optional[str]


def parse_header(payload: Mapping[str, Any]) -> HeaderInput:
    customer_raw = payload.get('customer_id')
    date_raw = payload.get('delivery_date')
    delivery_type = sanitize_string(payload.get('delivery_type'))
    if customer_raw in (None, '') or date_raw in (None, '') or not delivery_type:
        raise BadRequest('customer_id, delivery_date and delivery_type are required')
    return HeaderInput(
        customer_id=parse_positive_int(customer_raw, 'customer_id'),
        delivery_date=parse_iso_date(date_raw, 'delivery_date'),
        delivery_type=delivery_type,
        delivery_address=sanitize_string(payload.get('delivery_address')) or None,
        notes=sanitize_string(payload.get('notes')) or None,
    )


def _item_list(payload: Mapping[str, Any], *keys: str):
    for key in keys:
        value = payload.get(key)
        if value is None:
            continue
        if not isinstance(value, list):
            raise BadRequest(f'{key} must be a list')
        return value
    return []


class AggregateService:
    model: Type = None
    item_model: Type = None
    transitions: TransitionValidator = None
    allow_articles = False
    entity = ''
    page_size_key = ''

    def __init__(self, session=None):
        self.session = session or get_db()

    # --- reads ---
    def get(self, aggregate_id):
        return self.serialize(self._load(aggregate_id))

    def list(self, status=None, page_size: Optional[int] = None):
        q = self.session.query(self.model)
        if status not in (None, ''):
            parsed = Status.parse(status)
            if parsed is None:
                raise BadRequest('status filter invalid')
            q = q.filter(self.model.status_id == int(parsed))
        q = q.order_by(self.model.created_at.desc(), self.model.id.desc())
        if page_size is None and self.page_size_key:
            page_size = current_app.config.get(self.page_size_key)
        return paginate(q, self.serialize, page_size)

    # --- mutations ---
    def create(self, payload: Mapping[str, Any]):
        header = parse_header(payload)
        self._require_customer(header.customer_id)
        pricing = self._price(payload)
        aggregate = self.model(status_id=int(Status.PENDING), created_at=utcnow())
        self._apply(aggregate, header, pricing)
        aggregate.status_row = self.session.get(StatusRow, int(Status.PENDING))
        with self._unit_of_work(f'Could not create the {self.entity.lower()}'):
            self.session.add(aggregate)
        current_app.logger.info('%s %s created: items=%s final_total=%s', self.entity, aggregate.id, aggregate.item_count, money(aggregate.final_total))
        return self.serialize(aggregate)

    def update(self, aggregate_id, payload: Mapping[str, Any]):
        aggregate = self._load(aggregate_id)
        self._require_pending(aggregate, 'edited')
        header = parse_header(payload)
        self._require_customer(header.customer_id)
        pricing = self._price(payload)
        with self._unit_of_work(f'Could not update the {self.entity.lower()}'):
            aggregate.items.clear()
            self.session.flush()
            self._apply(aggregate, header, pricing)
            aggregate.updated_at = utcnow()
        current_app.logger.info('%s %s updated: items=%s final_total=%s', self.entity, aggregate.id, aggregate.item_count, money(aggregate.final_total))
        return self.serialize(aggregate)

    def transition(self, aggregate_id, target_status_id):
        aggregate = self._load(aggregate_id)
        current = Status.from_label(aggregate.status_label)
        if current is None:
            raise BadRequest(f'{self.entity} {aggregate.id} has an unknown status', error_code='UNKNOWN_STATUS')
        target = Status.from_id(target_status_id)
        if target is None:
            raise BadRequest('status_id invalid')
        self.transitions.assert_can_transition(current, target)
        with self._unit_of_work(f'Could not update the {self.entity.lower()} status'):
            self.on_transition(aggregate, current, target)
            aggregate.status_id = int(target)
            aggregate.status_row = self.session.get(StatusRow, int(target))
            aggregate.updated_at = utcnow()
        current_app.logger.info('%s %s status %s -> %s', self.entity, aggregate.id, current.label, target.label)
        return self.serialize(aggregate)

    def delete(self, aggregate_id):
        aggregate = self._load(aggregate_id)
        self._require_pending(aggregate, 'deleted')
        snapshot = self.serialize(aggregate)
        with self._unit_of_work(f'Could not delete the {self.entity.lower()}'):
            self.session.delete(aggregate)
        current_app.logger.info('%s %s deleted', self.entity, aggregate_id)
        return snapshot

    # --- hooks ---
    def on_transition(self, aggregate, current: Status, target: Status):
        """Side effects applied in the same unit of work as the status write."""

    # --- helpers ---
    def _unit_of_work(self, failure_message: str):
        return _UnitOfWork(self.session, failure_message)

    def _load(self, aggregate_id):
        ident = parse_positive_int(aggregate_id, 'id')
        return assert_found(self.session.get(self.model, ident, populate_existing=True), f'{self.entity} not found')

    def _require_customer(self, customer_id: int):
        if self.session.get(Customer, customer_id) is None:
            raise NotFound('Customer not found')

    def _require_pending(self, aggregate, verb: str):
        if Status.from_label(aggregate.status_label) != Status.PENDING:
            raise BadRequest(f'Only pending {self.entity.lower()}s can be {verb}', error_code='NOT_PENDING')

    def _price(self, payload: Mapping[str, Any]) -> PricingResult:
        return compute_totals(
            self.session,
            cakes=_item_list(payload, 'cakes', 'tortas'),
            trays=_item_list(payload, 'trays', 'bandejas'),
            articles=_item_list(payload, 'articles', 'articulos'),
            discount=payload.get('discount'),
            allow_articles=self.allow_articles,
        )

    def _apply(self, aggregate, header: HeaderInput, pricing: PricingResult):
        aggregate.customer_id = header.customer_id
        aggregate.customer = self.session.get(Customer, header.customer_id)
        aggregate.delivery_date = header.delivery_date
        aggregate.delivery_type = header.delivery_type
        aggregate.delivery_address = header.delivery_address
        aggregate.notes = header.notes
        aggregate.item_count = pricing.total_items
        aggregate.discount_total = pricing.discount
        aggregate.final_total = pricing.final_total
        for line in pricing.lines:
            aggregate.items.append(self.item_model.from_line(line))

    def serialize(self, aggregate) -> Dict[str, Any]:
        status = Status.from_id(aggregate.status_id)
        customer = aggregate.customer
        return {
            'id': aggregate.id,
            'customer_id': aggregate.customer_id,
            'customer': {'id': customer.id, 'name': customer.name} if customer is not None else None,
            'created_at': iso(aggregate.created_at),
            'delivery_date': iso(aggregate.delivery_date),
            'delivery_type': aggregate.delivery_type,
            'delivery_address': aggregate.delivery_address,
            'notes': aggregate.notes,
            'item_count': aggregate.item_count,
            'discount_total': money(aggregate.discount_total),
            'final_total': money(aggregate.final_total),
            'status': status.as_json() if status is not None else None,
            'updated_at': iso(aggregate.updated_at),
            'items': [line.as_json() for line in aggregate.lines()],
        }


class _UnitOfWork:
    """Commit on success; roll back and classify store errors on failure."""

    def __init__(self, session, failure_message: str):
        self.session = session
        self.failure_message = failure_message

    def __enter__(self):
        return self.session

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            try:
                self.session.commit()
            except SQLAlchemyError as err:
                self.session.rollback()
                raise from_db_error(err, self.failure_message) from err
            return False
        self.session.rollback()
        if isinstance(exc, SQLAlchemyError):
            raise from_db_error(exc, self.failure_message) from exc
        if not isinstance(exc, AppError):
            current_app.logger.error('%s: %s', self.failure_message, exc)
        return False


class OrderService(AggregateService):
    model = Order
    item_model = OrderItem
    transitions = ORDER_TRANSITIONS
    entity = 'Order'
    page_size_key = 'ORDERS_PAGE_SIZE'


class EventService(AggregateService):
    model = Event
    item_model = EventItem
    transitions = EVENT_TRANSITIONS
    allow_articles = True
    entity = 'Event'
    page_size_key = 'EVENTS_PAGE_SIZE'

    def on_transition(self, aggregate, current: Status, target: Status):
        if current == Status.PENDING and target == Status.CONFIRMED:
            adjust_stock_for_event(self.session, aggregate, DEBIT)
        elif current == Status.CONFIRMED and target in (Status.CLOSED, Status.CANCELLED):
            adjust_stock_for_event(self.session, aggregate, CREDIT)


__all__ = ['AggregateService', 'OrderService', 'EventService', 'ORDER_TRANSITIONS', 'EVENT_TRANSITIONS', 'parse_header']
