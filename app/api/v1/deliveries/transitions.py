"""Delivery status state machine.

Forward moves plus two explicit backward moves: un-start (in_progress -> pending)
and reopen (completed -> in_progress). There is no terminal state.
"""

from typing import Dict, FrozenSet

from app.core.enums import DeliveryStatus

VALID_TRANSITIONS: Dict[DeliveryStatus, FrozenSet[DeliveryStatus]] = {
    DeliveryStatus.pending: frozenset({DeliveryStatus.in_progress, DeliveryStatus.completed}),
    DeliveryStatus.in_progress: frozenset({DeliveryStatus.completed, DeliveryStatus.pending}),
    DeliveryStatus.completed: frozenset({DeliveryStatus.in_progress}),
}

INITIAL_STATUS = DeliveryStatus.pending


def validate_transition(from_status: DeliveryStatus, to_status: DeliveryStatus) -> bool:
    """True if moving from ``from_status`` to ``to_status`` is allowed.

    Staying in the same status is not a transition; callers treat it as a no-op.
    """
    return to_status in VALID_TRANSITIONS.get(from_status, frozenset())
