from decimal import Decimal

import pytest

from bakery import get_db
from bakery.models.lines import ArticleLine, CakeLine, TrayLine
from bakery.services.pricing import clamp_discount, compute_totals
from bakery.utils.errors import BadRequest, Conflict, NotFound
from tests.test_utils_seed import create_article, create_cake, create_tray


def test_totals_and_price_snapshot():
    cake = create_cake('1500.00')
    tray = create_tray('300.50')
    result = compute_totals(get_db(), cakes=[{'id': cake, 'quantity': 2}], trays=[{'id': tray, 'quantity': 1}])
    assert result.total == Decimal('3300.50')
    assert result.total_items == 3
    assert result.discount == Decimal('0.00')
    assert result.final_total == Decimal('3300.50')
    assert result.lines == [
        CakeLine(product_id=cake, quantity=2, unit_price=Decimal('1500.00')),
        TrayLine(product_id=tray, quantity=1, unit_price=Decimal('300.50')),
    ]


def test_legacy_request_keys_are_accepted():
    cake = create_cake('10.00')
    result = compute_totals(get_db(), cakes=[{'id_torta': cake, 'cantidad': 3}])
    assert result.total == Decimal('30.00')


def test_recomputing_is_idempotent():
    cake = create_cake('12.34')
    req = [{'id': cake, 'quantity': 3}]
    first = compute_totals(get_db(), cakes=req)
    second = compute_totals(get_db(), cakes=req)
    assert (first.total, first.total_items) == (second.total, second.total_items)


def test_unknown_product_is_not_found():
    with pytest.raises(NotFound):
        compute_totals(get_db(), cakes=[{'id': 999999, 'quantity': 1}])
    with pytest.raises(NotFound):
        compute_totals(get_db(), trays=[{'id': 999999, 'quantity': 1}])


@pytest.mark.parametrize('quantity', [0, -1, 1.5, 'abc', None, True])
def test_quantity_must_be_positive_integer(quantity):
    cake = create_cake('1.00')
    with pytest.raises(BadRequest):
        compute_totals(get_db(), cakes=[{'id': cake, 'quantity': quantity}])


def test_articles_rejected_unless_allowed():
    article = create_article(stock_total=5)
    with pytest.raises(BadRequest):
        compute_totals(get_db(), articles=[{'id': article, 'quantity': 1}])
    result = compute_totals(get_db(), articles=[{'id': article, 'quantity': 2}], allow_articles=True)
    assert result.lines == [ArticleLine(product_id=article, quantity=2, unit_price=Decimal('50.00'))]
    assert result.total == Decimal('100.00')


def test_article_stock_precheck_names_article_and_quantities():
    article = create_article(stock_total=10, stock_available=2, name='Chafing dish')
    with pytest.raises(Conflict) as exc:
        compute_totals(get_db(), articles=[{'id': article, 'quantity': 5}], allow_articles=True)
    message = exc.value.message
    assert 'Chafing dish' in message and '5' in message and '2' in message


def test_discount_is_clamped():
    cake = create_cake('100.00')
    req = [{'id': cake, 'quantity': 1}]
    over = compute_totals(get_db(), cakes=req, discount=150)
    assert over.discount == Decimal('100.00')
    assert over.final_total == Decimal('0.00')
    negative = compute_totals(get_db(), cakes=req, discount='-20')
    assert negative.final_total == Decimal('100.00')
    partial = compute_totals(get_db(), cakes=req, discount='25.50')
    assert partial.final_total == Decimal('74.50')


def test_clamp_discount_rejects_garbage():
    assert clamp_discount(None, Decimal('10')) == Decimal('0.00')
    with pytest.raises(BadRequest):
        clamp_discount('ten', Decimal('10'))


def test_empty_request_prices_to_zero():
    result = compute_totals(get_db())
    assert result.total == Decimal('0.00')
    assert result.total_items == 0
    assert result.lines == []
