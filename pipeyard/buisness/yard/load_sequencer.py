"""
LoadSequencer - Domain service for trucking load scheduling

Books loads with gap-free per-(request, direction) sequence numbers and moves
them through New → Approved → InTransit, or cancels them. Load N+1 cannot be
booked or approved while load N of the same pair is still New.
"""

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING
from datetime import datetime, timezone
from sqlalchemy import func
from pipeyard import db
from pipeyard.buisness.yard.errors import InvalidAssignmentError, NotFoundError
from pipeyard.buisness.yard.locks import lock_load, lock_request
from pipeyard.buisness.yard.narrator import YardNarrator
from pipeyard.buisness.yard.policies.load_sequence_policy import LoadSequencePolicy
from pipeyard.buisness.yard.policies.operator_policy import OperatorAccessPolicy
from pipeyard.buisness.yard.request_closer import RequestCloser
from pipeyard.buisness.yard.state_machine import (
    InventoryStateMachine,
    LoadStateMachine,
    RequestStateMachine,
)
from pipeyard.data.inventory_item import InventoryItem
from pipeyard.data.statuses import InventoryStatus, LoadDirection, LoadStatus, RequestStatus
from pipeyard.data.storage_request import StorageRequest
from pipeyard.data.trucking_load import TruckingLoad

if TYPE_CHECKING:
    from pipeyard.buisness.yard.transaction import EffectBundle


@dataclass(frozen=True)
class BookingCheck:
    """Advisory answer of can_book_next_load"""
    allowed: bool
    blocking_load: Optional[TruckingLoad] = None

    def to_dict(self):
        result = {'allowed': self.allowed, 'blocking_load': None}
        if self.blocking_load is not None:
            result['blocking_load'] = {
                'id': self.blocking_load.id,
                'sequence_number': self.blocking_load.sequence_number,
                'status': self.blocking_load.status.value,
            }
        return result


def coerce_direction(direction) -> LoadDirection:
    """
    Raises:
        InvalidAssignmentError: For anything but Inbound/Outbound
    """
    if isinstance(direction, LoadDirection):
        return direction
    try:
        return LoadDirection(direction)
    except ValueError:
        raise InvalidAssignmentError(
            f"Unknown load direction {direction!r}; expected Inbound or Outbound",
            direction=direction,
        )


def to_naive_utc(value, field: str) -> Optional[datetime]:
    """
    Scheduled times are stored as naive UTC; aware values are converted.

    Raises:
        InvalidAssignmentError: If the value is not a datetime
    """
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise InvalidAssignmentError(f"{field} must be a datetime, got {value!r}", field=field)
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class LoadSequencer:
    """
    Domain service for load scheduling operations.

    Responsibilities:
    - Assign sequence numbers under the parent request's row lock
    - Enforce ordered resolution through LoadSequencePolicy
    - Apply LoadStateMachine transitions
    - Return staged items to storage when an outbound load is cancelled
    """

    def __init__(self, effects: 'EffectBundle'):
        self.effects = effects
        self.operator = effects.operator

    @staticmethod
    def can_book_next_load(request_id: int, direction) -> BookingCheck:
        """
        Whether another load of the pair may be booked now. Read-only and advisory;
        book_load re-validates inside its own transaction.

        Raises:
            NotFoundError: If the request does not exist
        """
        direction = coerce_direction(direction)
        if db.session.get(StorageRequest, request_id) is None:
            raise NotFoundError(f"Storage request {request_id} not found", request_id=request_id)

        blocking = LoadSequencePolicy.find_blocking_load(request_id, direction)
        return BookingCheck(allowed=blocking is None, blocking_load=blocking)

    def book_load(
        self,
        request_id: int,
        direction,
        planned_quantity: Optional[int] = None,
        planned_length_ft: Optional[float] = None,
        planned_weight_lbs: Optional[float] = None,
        scheduled_start: Optional[datetime] = None,
        scheduled_end: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> TruckingLoad:
        """
        Book the next load of a (request, direction) pair.

        Raises:
            NotFoundError, UnauthorizedError, InvalidStateError,
            InvalidAssignmentError, SequenceViolationError
        """
        direction = coerce_direction(direction)
        request = lock_request(request_id)
        OperatorAccessPolicy.require_request_access(self.operator, request, 'book loads')
        RequestStateMachine.require(request.status, RequestStatus.APPROVED, label=f"Request {request.reference_code}")

        if planned_quantity is not None and (
                not isinstance(planned_quantity, int) or isinstance(planned_quantity, bool) or planned_quantity < 0):
            raise InvalidAssignmentError(
                f"Planned quantity must be a non-negative integer, got {planned_quantity!r}",
                planned_quantity=planned_quantity,
            )
        scheduled_start = to_naive_utc(scheduled_start, 'scheduled_start')
        scheduled_end = to_naive_utc(scheduled_end, 'scheduled_end')
        if scheduled_start and scheduled_end and scheduled_end < scheduled_start:
            raise InvalidAssignmentError(
                "Scheduled end must not be before scheduled start",
                scheduled_start=scheduled_start.isoformat(),
                scheduled_end=scheduled_end.isoformat(),
            )

        LoadSequencePolicy.check_can_book(request.id, direction)

        # The request row lock serializes bookings of the same request
        current_max = (
            db.session.query(func.max(TruckingLoad.sequence_number))
            .filter(TruckingLoad.request_id == request.id, TruckingLoad.direction == direction)
            .scalar()
        )

        load = TruckingLoad(
            request_id=request.id,
            direction=direction,
            sequence_number=(current_max or 0) + 1,
            status=LoadStatus.NEW,
            planned_quantity=planned_quantity,
            planned_length_ft=planned_length_ft,
            planned_weight_lbs=planned_weight_lbs,
            scheduled_start=scheduled_start,
            scheduled_end=scheduled_end,
            notes=notes,
            created_by=str(self.operator),
            updated_by=str(self.operator),
        )
        db.session.add(load)
        db.session.flush()

        message = YardNarrator.load_booked(request, load)
        self.effects.record_audit('TruckingLoad', load.id, {
            'request_id': request.id,
            'direction': direction.value,
            'sequence_number': load.sequence_number,
            'planned_quantity': planned_quantity,
            'message': message,
        })
        self.effects.enqueue_notification('load_booked', {
            'requestId': request.id,
            'referenceCode': request.reference_code,
            'owner': request.owner,
            'loadId': load.id,
            'direction': direction.value,
            'sequenceNumber': load.sequence_number,
            'scheduledStart': scheduled_start.isoformat() if scheduled_start else None,
            'message': message,
        })
        return load

    def approve_load(self, load_id: int) -> TruckingLoad:
        """
        New → Approved. No capacity side effects.

        Raises:
            NotFoundError, UnauthorizedError, InvalidStateError, SequenceViolationError
        """
        load = lock_load(load_id)
        OperatorAccessPolicy.require_privileged(self.operator, 'approve loads')
        LoadStateMachine.require(load.status, LoadStatus.NEW, label=load.label)
        LoadSequencePolicy.check_predecessors_resolved(load)

        load.status = LoadStateMachine.transition(load.status, LoadStatus.APPROVED)
        load.approved_at = datetime.utcnow()
        load.approved_by = str(self.operator)
        load.touch(str(self.operator))

        request = load.request
        message = YardNarrator.load_approved(request, load)
        self.effects.record_audit('TruckingLoad', load.id, {
            'request_id': request.id,
            'direction': load.direction.value,
            'sequence_number': load.sequence_number,
            'message': message,
        })
        self.effects.enqueue_notification('load_approved', {
            'requestId': request.id,
            'referenceCode': request.reference_code,
            'owner': request.owner,
            'loadId': load.id,
            'direction': load.direction.value,
            'sequenceNumber': load.sequence_number,
            'message': message,
        })
        return load

    def mark_in_transit(self, load_id: int) -> TruckingLoad:
        """
        Approved → InTransit. Audit only, no notification.

        Raises:
            NotFoundError, UnauthorizedError, InvalidStateError
        """
        load = lock_load(load_id)
        OperatorAccessPolicy.require_privileged(self.operator, 'dispatch loads')
        LoadStateMachine.require(load.status, LoadStatus.APPROVED, label=load.label)

        load.status = LoadStateMachine.transition(load.status, LoadStatus.IN_TRANSIT)
        load.touch(str(self.operator))

        self.effects.record_audit('TruckingLoad', load.id, {
            'request_id': load.request_id,
            'direction': load.direction.value,
            'sequence_number': load.sequence_number,
            'message': YardNarrator.load_in_transit(load.request, load),
        })
        return load

    def cancel_load(self, load_id: int, reason: Optional[str] = None) -> TruckingLoad:
        """
        New/Approved → Cancelled. Items staged for a cancelled outbound load go
        back to InStorage. Cancelling the last expected inbound load completes
        a request whose received pipe has all left the yard.

        Raises:
            NotFoundError, UnauthorizedError, InvalidStateError
        """
        load = lock_load(load_id)
        OperatorAccessPolicy.require_privileged(self.operator, 'cancel loads')

        load.status = LoadStateMachine.transition(load.status, LoadStatus.CANCELLED)
        load.cancelled_at = datetime.utcnow()
        load.cancelled_by = str(self.operator)
        load.cancellation_reason = reason
        load.touch(str(self.operator))

        request_completed = False
        if load.direction == LoadDirection.INBOUND:
            request = lock_request(load.request_id)
            db.session.flush()
            request_completed = RequestCloser(self.effects).close_if_done(request)
        else:
            request = load.request

        message = YardNarrator.load_cancelled(request, load, reason, request_completed)
        load.append_note(message)

        unstaged = []
        if load.direction == LoadDirection.OUTBOUND:
            staged = (
                InventoryItem.query
                .filter(
                    InventoryItem.disposition_load_id == load.id,
                    InventoryItem.status == InventoryStatus.PENDING_PICKUP,
                )
                .order_by(InventoryItem.id.asc())
                .with_for_update()
                .all()
            )
            for item in staged:
                item.status = InventoryStateMachine.transition(item.status, InventoryStatus.IN_STORAGE)
                item.disposition_load_id = None
                item.touch(str(self.operator))
                unstaged.append(item.id)

        self.effects.record_audit('TruckingLoad', load.id, {
            'request_id': request.id,
            'direction': load.direction.value,
            'sequence_number': load.sequence_number,
            'reason': reason,
            'returned_to_storage_item_ids': unstaged,
            'request_completed': request_completed,
            'message': message,
        })
        self.effects.enqueue_notification('load_cancelled', {
            'requestId': request.id,
            'referenceCode': request.reference_code,
            'owner': request.owner,
            'loadId': load.id,
            'direction': load.direction.value,
            'sequenceNumber': load.sequence_number,
            'reason': reason,
            'requestCompleted': request_completed,
            'message': message,
        })
        return load
