"""
State machines for request, load and inventory lifecycles

Encodes valid transitions. Keeps "what is allowed" separate from "how
persistence occurs": transition() returns the target status or raises,
it never touches the session.
"""

from typing import Dict, Set
from pipeyard.buisness.yard.errors import InvalidStateError
from pipeyard.data.statuses import RequestStatus, LoadStatus, InventoryStatus


class StatusStateMachine:
    """
    Base state machine over a closed status enum.

    Subclasses declare TRANSITIONS (from_status -> allowed targets) and the
    entity name used in error messages. Statuses absent from TRANSITIONS are
    terminal.
    """

    ENTITY = 'entity'
    TRANSITIONS: Dict = {}

    @classmethod
    def can_transition(cls, from_status, to_status) -> bool:
        return to_status in cls.TRANSITIONS.get(from_status, set())

    @classmethod
    def transition(cls, from_status, to_status):
        """
        Validate a move and return the next status.

        Raises:
            InvalidStateError: If the move is not allowed from the current status
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateError(
                f"Invalid {cls.ENTITY} status transition: {from_status.value} → {to_status.value}",
                current_status=from_status.value,
                requested_status=to_status.value,
                allowed=sorted(s.value for s in cls.get_allowed_transitions(from_status)),
            )
        return to_status

    @classmethod
    def require(cls, current, *expected, label=None):
        """Raise InvalidStateError unless current is one of the expected statuses"""
        if current not in expected:
            expected_text = ' or '.join(s.value for s in expected)
            raise InvalidStateError(
                f"{label or cls.ENTITY.capitalize()} is {current.value}; expected {expected_text}",
                current_status=current.value,
                expected_status=[s.value for s in expected],
            )

    @classmethod
    def is_terminal(cls, status) -> bool:
        return not cls.TRANSITIONS.get(status)

    @classmethod
    def get_allowed_transitions(cls, from_status) -> Set:
        return set(cls.TRANSITIONS.get(from_status, set()))


class RequestStateMachine(StatusStateMachine):
    """Pending → Approved/Rejected → Completed. Rejected and Completed are terminal."""

    ENTITY = 'request'
    TRANSITIONS: Dict[RequestStatus, Set[RequestStatus]] = {
        RequestStatus.PENDING: {RequestStatus.APPROVED, RequestStatus.REJECTED},
        RequestStatus.APPROVED: {RequestStatus.COMPLETED},
    }


class LoadStateMachine(StatusStateMachine):
    """
    New → Approved → InTransit → Completed.

    A load may also complete straight from Approved (truck arrived unannounced),
    and may be cancelled before it is on the road.
    """

    ENTITY = 'load'
    TRANSITIONS: Dict[LoadStatus, Set[LoadStatus]] = {
        LoadStatus.NEW: {LoadStatus.APPROVED, LoadStatus.CANCELLED},
        LoadStatus.APPROVED: {LoadStatus.IN_TRANSIT, LoadStatus.COMPLETED, LoadStatus.CANCELLED},
        LoadStatus.IN_TRANSIT: {LoadStatus.COMPLETED},
    }


class InventoryStateMachine(StatusStateMachine):
    """Inventory moves forward only, except staging for pickup can be undone."""

    ENTITY = 'inventory item'
    TRANSITIONS: Dict[InventoryStatus, Set[InventoryStatus]] = {
        InventoryStatus.PENDING_DELIVERY: {InventoryStatus.IN_STORAGE},
        InventoryStatus.IN_STORAGE: {InventoryStatus.PENDING_PICKUP, InventoryStatus.DELIVERED},
        InventoryStatus.PENDING_PICKUP: {InventoryStatus.IN_STORAGE, InventoryStatus.IN_TRANSIT, InventoryStatus.DELIVERED},
        InventoryStatus.IN_TRANSIT: {InventoryStatus.DELIVERED},
    }
