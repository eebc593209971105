"""
RequestLifecycleManager - Domain service for storage request decisions

Submits requests, approves them against rack capacity and rejects them.
Approval is the only place capacity is reserved for a request.
"""

from typing import Any, List, Optional, Sequence, Tuple, TYPE_CHECKING
from datetime import datetime
from pipeyard import db
from pipeyard.buisness.yard.capacity_ledger import CapacityLedger
from pipeyard.buisness.yard.distribution import distribute_evenly
from pipeyard.buisness.yard.errors import InvalidAssignmentError
from pipeyard.buisness.yard.locks import lock_request
from pipeyard.buisness.yard.narrator import YardNarrator
from pipeyard.buisness.yard.policies.capacity_policy import CapacityPolicy
from pipeyard.buisness.yard.policies.operator_policy import OperatorAccessPolicy
from pipeyard.buisness.yard.state_machine import RequestStateMachine
from pipeyard.data.statuses import RequestStatus
from pipeyard.data.storage_request import StorageRequest, UnitAllocation

if TYPE_CHECKING:
    from pipeyard.buisness.yard.transaction import EffectBundle


def parse_unit_assignments(unit_assignments: Sequence[Any]) -> Tuple[List[int], Optional[List[int]]]:
    """
    Normalize approval input into (unit_ids, quantities).

    Accepts either bare unit ids, or (unit_id, quantity) pairs / {'unit_id', 'quantity'}
    dicts. Mixing the two forms is rejected. quantities is None for bare ids.

    Raises:
        InvalidAssignmentError: On empty, duplicate, mixed or malformed input
    """
    if not unit_assignments:
        raise InvalidAssignmentError("At least one storage unit must be assigned")

    unit_ids = []
    quantities = []
    for entry in unit_assignments:
        if isinstance(entry, dict):
            unit_id, quantity = entry.get('unit_id'), entry.get('quantity')
        elif isinstance(entry, (list, tuple)):
            if len(entry) != 2:
                raise InvalidAssignmentError(f"Malformed unit assignment {entry!r}; expected (unit_id, quantity)")
            unit_id, quantity = entry
        else:
            unit_id, quantity = entry, None

        if not _is_int(unit_id):
            raise InvalidAssignmentError(f"Storage unit id must be an integer, got {unit_id!r}")
        unit_ids.append(unit_id)
        quantities.append(quantity)

    duplicates = sorted({unit_id for unit_id in unit_ids if unit_ids.count(unit_id) > 1})
    if duplicates:
        raise InvalidAssignmentError(
            f"Storage unit(s) assigned more than once: {', '.join(str(d) for d in duplicates)}",
            duplicate_unit_ids=duplicates,
        )

    given = [quantity is not None for quantity in quantities]
    if not any(given):
        return unit_ids, None
    if not all(given):
        raise InvalidAssignmentError("Either every unit assignment carries a quantity or none does")

    for unit_id, quantity in zip(unit_ids, quantities):
        if not _is_int(quantity) or quantity <= 0:
            raise InvalidAssignmentError(
                f"Quantity for storage unit {unit_id} must be a positive integer, got {quantity!r}",
                storage_unit_id=unit_id,
                quantity=quantity,
            )
    return unit_ids, quantities


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class RequestLifecycleManager:
    """
    Domain service for request lifecycle operations.

    Responsibilities:
    - Create Pending requests
    - Approve against locked storage units and reserve capacity
    - Reject without touching capacity
    - Record audit/notification effects via the EffectBundle
    """

    def __init__(self, effects: 'EffectBundle'):
        self.effects = effects
        self.operator = effects.operator
        self.ledger = CapacityLedger(effects)

    def submit(
        self,
        reference_code: str,
        owner: str,
        requested_quantity: int,
        contact_email: Optional[str] = None,
        item_description: Optional[str] = None,
    ) -> StorageRequest:
        """
        Create a Pending storage request.

        Raises:
            UnauthorizedError: If a customer operator submits for another tenant
            InvalidAssignmentError: On a missing/duplicate reference or a bad quantity
        """
        OperatorAccessPolicy.require_tenant_access(self.operator, owner, 'submit a storage request')

        reference_code = (reference_code or '').strip()
        if not reference_code:
            raise InvalidAssignmentError("Reference code is required")
        if not (owner or '').strip():
            raise InvalidAssignmentError("Request owner is required")
        if not _is_int(requested_quantity) or requested_quantity <= 0:
            raise InvalidAssignmentError(
                f"Requested quantity must be a positive integer, got {requested_quantity!r}",
                requested_quantity=requested_quantity,
            )
        if StorageRequest.query.filter_by(reference_code=reference_code).first() is not None:
            raise InvalidAssignmentError(
                f"Reference code {reference_code} is already in use",
                reference_code=reference_code,
            )

        request = StorageRequest(
            reference_code=reference_code,
            owner=owner,
            contact_email=contact_email,
            item_description=item_description,
            requested_quantity=requested_quantity,
            required_capacity=requested_quantity,
            status=RequestStatus.PENDING,
            created_by=str(self.operator),
            updated_by=str(self.operator),
        )
        db.session.add(request)
        db.session.flush()

        message = YardNarrator.request_submitted(request)
        self.effects.record_audit('StorageRequest', request.id, {
            'reference_code': reference_code,
            'owner': owner,
            'requested_quantity': requested_quantity,
            'required_capacity': request.required_capacity,
            'message': message,
        })
        self.effects.enqueue_notification('storage_request_submitted', {
            'requestId': request.id,
            'referenceCode': reference_code,
            'owner': owner,
            'contactEmail': contact_email,
            'requestedQuantity': requested_quantity,
            'message': message,
        })
        return request

    def approve(self, request_id: int, unit_assignments: Sequence[Any], notes: Optional[str] = None) -> StorageRequest:
        """
        Approve a Pending request and reserve its required capacity.

        Args:
            request_id: Request to approve
            unit_assignments: Ordered unit ids, or (unit_id, quantity) pairs
            notes: Optional internal approval notes

        Raises:
            NotFoundError, UnauthorizedError, InvalidStateError,
            InvalidAssignmentError, InsufficientCapacityError
        """
        request = lock_request(request_id)
        OperatorAccessPolicy.require_privileged(self.operator, 'approve storage requests')
        RequestStateMachine.require(request.status, RequestStatus.PENDING, label=f"Request {request.reference_code}")

        unit_ids, quantities = parse_unit_assignments(unit_assignments)
        required = request.required_capacity

        if quantities is not None and sum(quantities) != required:
            raise InvalidAssignmentError(
                f"Assigned quantities sum to {sum(quantities)} but request {request.reference_code} "
                f"requires {required}",
                assigned=sum(quantities),
                required=required,
            )

        units = CapacityLedger.ordered(self.ledger.lock_units(unit_ids), unit_ids)
        CapacityPolicy.check_sufficient(units, required)

        if quantities is None:
            quantities = distribute_evenly(required, len(units), limits=[unit.available for unit in units])
        else:
            for unit, quantity in zip(units, quantities):
                CapacityPolicy.check_unit_quantity(unit, quantity)

        request.status = RequestStateMachine.transition(request.status, RequestStatus.APPROVED)
        request.approved_at = datetime.utcnow()
        request.approved_by = str(self.operator)
        request.approval_notes = notes
        request.touch(str(self.operator))

        placements = []
        for position, (unit, quantity) in enumerate(zip(units, quantities)):
            request.allocations.append(UnitAllocation(
                storage_unit_id=unit.id,
                position=position,
                allocated_quantity=quantity,
                reserved_quantity=quantity,
                created_by=str(self.operator),
                updated_by=str(self.operator),
            ))
            if quantity:
                self.ledger.allocate(unit, quantity)
            placements.append((unit, quantity))

        db.session.flush()

        message = YardNarrator.request_approved(request, [(unit.name, quantity) for unit, quantity in placements])
        self.effects.record_audit('StorageRequest', request.id, {
            'reference_code': request.reference_code,
            'required_capacity': required,
            'placements': [
                {'storage_unit_id': unit.id, 'unit_name': unit.name, 'quantity': quantity,
                 'occupied_after': unit.occupied}
                for unit, quantity in placements
            ],
            'notes': notes,
            'message': message,
        })
        self.effects.enqueue_notification('storage_request_approved', {
            'requestId': request.id,
            'referenceCode': request.reference_code,
            'owner': request.owner,
            'contactEmail': request.contact_email,
            'assignedUnits': [unit.name for unit, _ in placements],
            'message': message,
        })
        return request

    def reject(self, request_id: int, reason: str) -> StorageRequest:
        """
        Reject a Pending request. No capacity is touched.

        Raises:
            NotFoundError, UnauthorizedError, InvalidStateError, InvalidAssignmentError
        """
        request = lock_request(request_id)
        OperatorAccessPolicy.require_privileged(self.operator, 'reject storage requests')
        RequestStateMachine.require(request.status, RequestStatus.PENDING, label=f"Request {request.reference_code}")

        reason = (reason or '').strip()
        if not reason:
            raise InvalidAssignmentError("A rejection reason is required")

        request.status = RequestStateMachine.transition(request.status, RequestStatus.REJECTED)
        request.rejected_at = datetime.utcnow()
        request.rejected_by = str(self.operator)
        request.rejection_reason = reason
        request.touch(str(self.operator))

        message = YardNarrator.request_rejected(request, reason)
        self.effects.record_audit('StorageRequest', request.id, {
            'reference_code': request.reference_code,
            'reason': reason,
            'message': message,
        })
        self.effects.enqueue_notification('storage_request_rejected', {
            'requestId': request.id,
            'referenceCode': request.reference_code,
            'owner': request.owner,
            'contactEmail': request.contact_email,
            'reason': reason,
            'message': message,
        })
        return request
