"""Simple finite state machine utility for enforcing allowed status transitions.

Used by the order and event lifecycles.
Usage:
    from bakery.utils.fsm import TransitionValidator
    ORDER_FSM = TransitionValidator({
        Status.PENDING: {Status.CONFIRMED, Status.CANCELLED},
        Status.CONFIRMED: {Status.CLOSED},
        Status.CLOSED: set(),
        Status.CANCELLED: set(),
    })
    ORDER_FSM.assert_can_transition(current_status, target_status)

Raises BadRequest if invalid.
"""
from __future__ import annotations
from typing import Dict, Hashable, Set

from bakery.utils.errors import BadRequest


def _label(state) -> str:
    return getattr(state, 'label', None) or str(state)


class TransitionValidator:
    def __init__(self, graph: Dict[Hashable, Set[Hashable]], field_name: str = 'status'):
        self.graph = {k: frozenset(v) for k, v in graph.items()}
        self.field_name = field_name

    def allowed_from(self, current) -> frozenset:
        return self.graph.get(current, frozenset())

    def can_transition(self, current, target) -> bool:
        return target in self.allowed_from(current)

    def assert_can_transition(self, current, target):
        if not self.can_transition(current, target):
            raise BadRequest(
                f"Invalid {self.field_name} transition {_label(current)} -> {_label(target)}",
                error_code='INVALID_TRANSITION',
            )
        return True

    def is_terminal(self, state) -> bool:
        return not self.allowed_from(state)


__all__ = ['TransitionValidator']
