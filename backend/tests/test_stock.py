from datetime import date
from decimal import Decimal

import pytest

from bakery import get_db
from bakery.models.event import Event, EventItem
from bakery.services.stock import CREDIT, DEBIT, adjust_stock_for_event, article_quantities
from bakery.utils.errors import Conflict, NotFound
from tests.test_utils_seed import article_stock, create_article, create_cake, create_customer


def _event(lines):
    """Persist a pending event with (column, product_id, quantity) lines."""
    session = get_db()
    ev = Event(customer_id=create_customer(), delivery_date=date(2026, 12, 1), delivery_type='pickup')
    for column, product_id, qty in lines:
        ev.items.append(EventItem(quantity=qty, unit_price=Decimal('1.00'), **{column: product_id}))
    session.add(ev); session.commit()
    return ev


def test_quantities_are_summed_per_article():
    a = create_article(stock_total=10)
    b = create_article(stock_total=10)
    ev = _event([('article_id', a, 2), ('article_id', b, 1), ('article_id', a, 3), ('cake_id', create_cake(), 4)])
    assert article_quantities(ev) == {a: 5, b: 1}


def test_debit_then_credit_restores_stock():
    a = create_article(stock_total=10)
    ev = _event([('article_id', a, 3)])
    session = get_db()
    adjust_stock_for_event(session, ev, DEBIT)
    session.commit()
    assert article_stock(a) == 7
    adjust_stock_for_event(session, ev, CREDIT)
    session.commit()
    assert article_stock(a) == 10


def test_credit_is_clamped_to_total():
    a = create_article(stock_total=10, stock_available=9)
    ev = _event([('article_id', a, 3)])
    session = get_db()
    assert adjust_stock_for_event(session, ev, CREDIT) == {a: 10}
    session.commit()
    assert article_stock(a) == 10


def test_insufficient_stock_rejects_everything():
    plenty = create_article(stock_total=10)
    scarce = create_article(stock_total=10, stock_available=2, name='Fountain')
    ev = _event([('article_id', plenty, 3), ('article_id', scarce, 5)])
    session = get_db()
    with pytest.raises(Conflict) as exc:
        adjust_stock_for_event(session, ev, DEBIT)
    session.rollback()
    assert 'Fountain' in exc.value.message
    assert article_stock(plenty) == 10
    assert article_stock(scarce) == 2


def test_no_article_lines_is_noop():
    ev = _event([('cake_id', create_cake(), 1)])
    assert adjust_stock_for_event(get_db(), ev, DEBIT) == {}


def test_missing_article_is_not_found():
    ev = _event([('article_id', 987654, 1)])
    with pytest.raises(NotFound):
        adjust_stock_for_event(get_db(), ev, DEBIT)
    get_db().rollback()


@pytest.mark.parametrize('direction', [0, 2, -2])
def test_direction_must_be_unit(direction):
    with pytest.raises(ValueError):
        adjust_stock_for_event(get_db(), None, direction)
