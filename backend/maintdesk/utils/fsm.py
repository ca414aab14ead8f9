"""Finite state machine utility for enforcing allowed status transitions.

Usage:
    from maintdesk.utils.fsm import TransitionValidator
    REQUEST_FSM = TransitionValidator({
        RequestStatus.SUBMITTED: {RequestStatus.ASSIGNED, RequestStatus.REJECTED},
        RequestStatus.CLOSED: set(),
    })
    REQUEST_FSM.assert_can_transition(current_status, target_status)

Raises InvalidTransition if the pair is not an edge of the graph. States missing
from the graph have no outgoing edges.
"""
from __future__ import annotations
from typing import Dict, FrozenSet, Hashable, Iterable, Mapping
from maintdesk.errors import InvalidTransition


class TransitionValidator:
    def __init__(self, graph: Mapping[Hashable, Iterable[Hashable]], field_name: str = 'status'):
        self.graph: Dict[Hashable, FrozenSet[Hashable]] = {k: frozenset(v) for k, v in graph.items()}
        self.field_name = field_name

    def allowed_targets(self, current) -> FrozenSet[Hashable]:
        return self.graph.get(current, frozenset())

    def can_transition(self, current, target) -> bool:
        return target in self.allowed_targets(current)

    def assert_can_transition(self, current, target):
        if not self.can_transition(current, target):
            raise InvalidTransition(current, target)
        return True

    def terminal_states(self) -> FrozenSet[Hashable]:
        return frozenset(k for k, v in self.graph.items() if not v)

    def edges(self):
        """Yield every allowed (current, target) pair."""
        for current, targets in self.graph.items():
            for target in targets:
                yield current, target


__all__ = ['TransitionValidator']
