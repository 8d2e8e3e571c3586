from itertools import product

import pytest

from bakery.models.status import Status
from bakery.services.lifecycle import EVENT_TRANSITIONS, ORDER_TRANSITIONS
from bakery.utils.errors import BadRequest
from bakery.utils.fsm import TransitionValidator

ORDER_ALLOWED = {
    (Status.PENDING, Status.CONFIRMED), (Status.PENDING, Status.CANCELLED),
    (Status.CONFIRMED, Status.CLOSED),
}
EVENT_ALLOWED = ORDER_ALLOWED | {(Status.CONFIRMED, Status.CANCELLED)}


def test_transition_validator_allows_valid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    assert fsm.assert_can_transition('A', 'B') is True
    assert fsm.is_terminal('B')


def test_transition_validator_blocks_invalid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    with pytest.raises(BadRequest) as exc:
        fsm.assert_can_transition('A', 'C')
    assert exc.value.error_code == 'INVALID_TRANSITION'


@pytest.mark.parametrize('current,target', list(product(Status, Status)))
def test_order_transition_table(current, target):
    assert ORDER_TRANSITIONS.can_transition(current, target) == ((current, target) in ORDER_ALLOWED)


@pytest.mark.parametrize('current,target', list(product(Status, Status)))
def test_event_transition_table(current, target):
    assert EVENT_TRANSITIONS.can_transition(current, target) == ((current, target) in EVENT_ALLOWED)


def test_illegal_transition_message_names_both_states():
    with pytest.raises(BadRequest) as exc:
        ORDER_TRANSITIONS.assert_can_transition(Status.CLOSED, Status.CONFIRMED)
    assert 'closed -> confirmed' in exc.value.message


def test_terminal_states():
    for fsm in (ORDER_TRANSITIONS, EVENT_TRANSITIONS):
        assert fsm.is_terminal(Status.CLOSED)
        assert fsm.is_terminal(Status.CANCELLED)
        assert not fsm.is_terminal(Status.PENDING)


def test_status_label_mapping():
    assert Status.from_label(' Confirmed ') is Status.CONFIRMED
    assert Status.from_label('unknown') is None
    assert Status.from_label(None) is None
    assert Status.parse('3') is Status.CLOSED
    assert Status.parse('cancelled') is Status.CANCELLED
    assert Status.parse(True) is None
    assert Status.CLOSED.as_json() == {'id': 3, 'label': 'closed'}


def test_status_from_id_requires_an_exact_integer():
    assert Status.from_id(2) is Status.CONFIRMED
    assert Status.from_id(' 4 ') is Status.CANCELLED
    for raw in (2.9, 2.0, True, '2.0', '', None, 0, 5):
        assert Status.from_id(raw) is None
