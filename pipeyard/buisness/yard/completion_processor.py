"""
CompletionProcessor - Domain service for load completion

Converts a finished load into inventory changes and capacity counter updates:

- Inbound: manifest lines (or one aggregate LEGACY item, even for an empty truck)
  become InStorage items placed on the request's racks. Received goods first
  consume the request's outstanding reservation; goods beyond it need fresh
  capacity; reservation no longer needed is released.
- Outbound: picked-up items leave the yard and free their racks.
- Both directions then let RequestCloser complete a request with nothing left.
- Pickup staging: InStorage items are marked PendingPickup for an outbound load.

Reconciliation invariant for every rack:
    occupied = stored items (InStorage + PendingPickup) + outstanding reservations
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING
from datetime import datetime
from pipeyard import db
from pipeyard.buisness.yard.capacity_ledger import CapacityLedger
from pipeyard.buisness.yard.distribution import distribute_evenly, distribute_proportionally
from pipeyard.buisness.yard.errors import (
    InvalidAssignmentError,
    InvalidStateError,
    ItemNotPickupableError,
    NotFoundError,
    UnauthorizedError,
)
from pipeyard.buisness.yard.locks import lock_load, lock_request
from pipeyard.buisness.yard.narrator import YardNarrator
from pipeyard.buisness.yard.policies.capacity_policy import CapacityPolicy
from pipeyard.buisness.yard.policies.load_sequence_policy import LoadSequencePolicy
from pipeyard.buisness.yard.policies.operator_policy import OperatorAccessPolicy
from pipeyard.buisness.yard.request_closer import RequestCloser
from pipeyard.buisness.yard.state_machine import (
    InventoryStateMachine,
    LoadStateMachine,
    RequestStateMachine,
)
from pipeyard.buisness.yard.transaction import ReconciliationWarning
from pipeyard.data.inventory_item import InventoryItem
from pipeyard.data.statuses import (
    InventoryStatus,
    LoadDirection,
    LoadStatus,
    OPEN_LOAD_STATUSES,
    RequestStatus,
)
from pipeyard.data.trucking_load import TruckingLoad

if TYPE_CHECKING:
    from pipeyard.buisness.yard.transaction import EffectBundle


@dataclass(frozen=True)
class ActualTotals:
    """Totals reported by the yard when a truck is unloaded"""
    quantity: int
    length_ft: Optional[float] = None
    weight_lbs: Optional[float] = None

    @classmethod
    def from_value(cls, value) -> ActualTotals:
        """Accept an ActualTotals, a bare quantity or a dict with quantity/length_ft/weight_lbs"""
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            return cls(
                quantity=value.get('quantity'),
                length_ft=_optional_float(value.get('length_ft'), 'length_ft'),
                weight_lbs=_optional_float(value.get('weight_lbs'), 'weight_lbs'),
            )
        return cls(quantity=value)


@dataclass(frozen=True)
class ManifestLine:
    """The fields of one extracted manifest row the engine cares about"""
    line_ref: Optional[int]
    reference: str
    quantity: int
    length_ft: Optional[float] = None
    weight_lbs_ft: Optional[float] = None
    grade: Optional[str] = None
    outer_diameter_in: Optional[float] = None

    @classmethod
    def from_dict(cls, line_ref: int, data: Dict[str, Any]) -> ManifestLine:
        """
        Raises:
            InvalidAssignmentError: If the line is not a dict or its quantity is not a positive integer
        """
        if not isinstance(data, dict):
            raise InvalidAssignmentError(f"Manifest line {line_ref} must be an object", line_ref=line_ref)

        quantity = data.get('quantity')
        if quantity is None:
            quantity = 1
        try:
            quantity = int(quantity)
        except (TypeError, ValueError):
            raise InvalidAssignmentError(
                f"Manifest line {line_ref} has a non-numeric quantity {data.get('quantity')!r}",
                line_ref=line_ref,
            )
        if quantity <= 0:
            raise InvalidAssignmentError(
                f"Manifest line {line_ref} quantity must be positive, got {quantity}",
                line_ref=line_ref,
                quantity=quantity,
            )

        return cls(
            line_ref=line_ref,
            reference=data.get('serial_number') or data.get('heat_number') or 'UNKNOWN',
            quantity=quantity,
            length_ft=_optional_float(data.get('tally_length_ft'), 'tally_length_ft'),
            weight_lbs_ft=_optional_float(data.get('weight_lbs_ft'), 'weight_lbs_ft'),
            grade=data.get('grade'),
            outer_diameter_in=_optional_float(data.get('outer_diameter'), 'outer_diameter'),
        )


def _optional_float(value, field: str) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidAssignmentError(f"{field} must be numeric, got {value!r}", field=field)


class CompletionProcessor:
    """
    Domain service for load completion and pickup staging.

    Responsibilities:
    - Validate load/request state and load sequencing
    - Create, place, stage and deliver inventory items
    - Keep rack counters and allocation reservations reconciled via CapacityLedger
    - Record audit/notification effects and reconciliation warnings
    """

    def __init__(self, effects: 'EffectBundle'):
        self.effects = effects
        self.operator = effects.operator
        self.ledger = CapacityLedger(effects)

    # ------------------------------------------------------------------ inbound

    def complete_inbound(
        self,
        load_id: int,
        actual_totals,
        manifest_lines: Optional[Sequence[Dict[str, Any]]] = None,
        notes: Optional[str] = None,
    ) -> TruckingLoad:
        """
        Complete an inbound load and put its pipe into storage.

        Args:
            load_id: Inbound load to complete
            actual_totals: ActualTotals (or quantity / dict) reported at unloading
            manifest_lines: Extracted manifest rows; None for loads without manifest data
            notes: Optional operator notes appended to the load

        Raises:
            NotFoundError, UnauthorizedError, InvalidStateError, SequenceViolationError,
            InvalidAssignmentError, OverCapacityError
        """
        totals = ActualTotals.from_value(actual_totals)
        load = lock_load(load_id)
        OperatorAccessPolicy.require_privileged(self.operator, 'complete loads')
        self._require_direction(load, LoadDirection.INBOUND)
        LoadStateMachine.require(load.status, LoadStatus.APPROVED, LoadStatus.IN_TRANSIT, label=load.label)

        request = lock_request(load.request_id)
        RequestStateMachine.require(request.status, RequestStatus.APPROVED, label=f"Request {request.reference_code}")
        LoadSequencePolicy.check_predecessors_resolved(load)

        if not isinstance(totals.quantity, int) or isinstance(totals.quantity, bool) or totals.quantity < 0:
            raise InvalidAssignmentError(
                f"Received quantity must be a non-negative integer, got {totals.quantity!r}",
                quantity=totals.quantity,
            )

        if manifest_lines:
            lines = [ManifestLine.from_dict(index, data) for index, data in enumerate(manifest_lines)]
        else:
            lines = [ManifestLine(line_ref=None, reference=f"LEGACY-{load.id}", quantity=totals.quantity)]
        stored = sum(line.quantity for line in lines)

        if manifest_lines and stored != totals.quantity:
            warning = ReconciliationWarning(
                load_id=load.id,
                reported_quantity=totals.quantity,
                manifest_quantity=stored,
                message=YardNarrator.reconciliation_mismatch(stored, totals.quantity),
            )
            self.effects.warn(warning)

        allocations = list(request.allocations)
        units_by_id = self.ledger.lock_units(allocation.storage_unit_id for allocation in allocations)
        units = [units_by_id[allocation.storage_unit_id] for allocation in allocations]
        outstanding = request.outstanding_reservation

        # 1. Received goods consume the outstanding reservation
        consumed = min(stored, outstanding)
        consumed_shares = distribute_proportionally(consumed, [a.reserved_quantity for a in allocations])

        # 2. Goods beyond the reservation need fresh capacity
        extra = stored - consumed
        extra_shares = [0] * len(allocations)
        if extra:
            CapacityPolicy.check_over_capacity(units, extra, outstanding)
            extra_shares = distribute_evenly(extra, len(units), limits=[unit.available for unit in units])
            for unit, share in zip(units, extra_shares):
                if share:
                    self.ledger.allocate(unit, share)

        for allocation, share in zip(allocations, consumed_shares):
            allocation.reserved_quantity -= share
            allocation.touch(str(self.operator))

        # 3. Reservation no longer needed is given back
        released = self._release_unneeded_reservation(load, allocations, units, stored)

        targets = [c + e for c, e in zip(consumed_shares, extra_shares)]
        items = self._place_lines(request, load, lines, units, targets)

        load.status = LoadStateMachine.transition(load.status, LoadStatus.COMPLETED)
        load.completed_quantity = stored
        load.completed_length_ft = totals.length_ft
        load.completed_weight_lbs = totals.weight_lbs
        load.completed_at = datetime.utcnow()
        load.completed_by = str(self.operator)
        load.touch(str(self.operator))
        if notes:
            load.append_note(notes)
        for warning in self.effects.warnings:
            load.append_note(warning.message)

        db.session.flush()

        request_completed = RequestCloser(self.effects, self.ledger).close_if_done(request, units_by_id)

        message = YardNarrator.inbound_completed(request, load, stored, released, extra, request_completed)
        self.effects.record_audit('TruckingLoad', load.id, {
            'request_id': request.id,
            'sequence_number': load.sequence_number,
            'reported_quantity': totals.quantity,
            'stored_quantity': stored,
            'consumed_reservation': consumed,
            'extra_quantity': extra,
            'released_reservation': released,
            'placements': [
                {'storage_unit_id': unit.id, 'unit_name': unit.name, 'quantity': target,
                 'occupied_after': unit.occupied}
                for unit, target in zip(units, targets)
            ],
            'item_ids': [item.id for item in items],
            'warnings': [warning.to_dict() for warning in self.effects.warnings],
            'request_completed': request_completed,
            'message': message,
        })
        self.effects.enqueue_notification('inbound_load_completed', {
            'requestId': request.id,
            'referenceCode': request.reference_code,
            'owner': request.owner,
            'contactEmail': request.contact_email,
            'loadId': load.id,
            'sequenceNumber': load.sequence_number,
            'storedQuantity': stored,
            'requestCompleted': request_completed,
            'message': message,
        })
        return load

    def _release_unneeded_reservation(self, load, allocations, units, stored: int) -> int:
        """
        Release reservation this request no longer needs.

        The last open inbound load releases everything still reserved; an earlier
        load that arrived short of its plan releases the shortfall.
        """
        remaining = [allocation.reserved_quantity for allocation in allocations]
        remaining_total = sum(remaining)
        if remaining_total == 0:
            return 0

        other_open_inbound = (
            TruckingLoad.query
            .filter(
                TruckingLoad.request_id == load.request_id,
                TruckingLoad.direction == LoadDirection.INBOUND,
                TruckingLoad.status.in_(OPEN_LOAD_STATUSES),
                TruckingLoad.id != load.id,
            )
            .count()
        )

        if other_open_inbound == 0:
            to_release = remaining_total
        elif load.planned_quantity is not None and stored < load.planned_quantity:
            to_release = min(load.planned_quantity - stored, remaining_total)
        else:
            return 0

        shares = distribute_proportionally(to_release, remaining)
        for allocation, unit, share in zip(allocations, units, shares):
            if share:
                allocation.reserved_quantity -= share
                allocation.touch(str(self.operator))
                self.ledger.release(unit, share)
        return to_release

    def _place_lines(self, request, load, lines: List[ManifestLine], units, targets: List[int]) -> List[InventoryItem]:
        """
        Fill each rack's target in assignment order, line by line. A line that
        straddles two racks becomes one item per rack with the same line ref.
        An empty legacy receipt is recorded as one zero-quantity item on the
        first assigned rack.
        """
        items = []
        remaining_targets = list(targets)
        index = 0
        now = datetime.utcnow()

        for line in lines:
            if line.quantity == 0:
                items.append(self._store_item(request, load, line, units[0], 0, now))
                continue

            left = line.quantity
            while left > 0:
                while index < len(units) and remaining_targets[index] == 0:
                    index += 1
                if index >= len(units):
                    raise RuntimeError(f"Placement targets exhausted with {left} joints of line {line.reference} left")

                take = min(left, remaining_targets[index])
                items.append(self._store_item(request, load, line, units[index], take, now))

                remaining_targets[index] -= take
                left -= take

        db.session.flush()
        return items

    def _store_item(self, request, load, line: ManifestLine, unit, quantity: int, now: datetime) -> InventoryItem:
        item = InventoryItem(
            request_id=request.id,
            origin_load_id=load.id,
            storage_unit_id=unit.id,
            manifest_line_ref=line.line_ref,
            reference=line.reference,
            quantity=quantity,
            length_ft=line.length_ft,
            weight_lbs_ft=line.weight_lbs_ft,
            grade=line.grade,
            outer_diameter_in=line.outer_diameter_in,
            status=InventoryStatus.PENDING_DELIVERY,
            created_by=str(self.operator),
            updated_by=str(self.operator),
        )
        item.status = InventoryStateMachine.transition(item.status, InventoryStatus.IN_STORAGE)
        item.stored_at = now
        db.session.add(item)
        return item

    # ------------------------------------------------------------------ outbound

    def request_pickup(self, load_id: int, item_ids: Sequence[int]) -> TruckingLoad:
        """
        Stage InStorage items of the load's request onto an outbound load.
        Items already staged for this load are left as they are.

        Raises:
            NotFoundError, UnauthorizedError, InvalidStateError,
            InvalidAssignmentError, ItemNotPickupableError
        """
        load = lock_load(load_id)
        request = load.request
        OperatorAccessPolicy.require_request_access(self.operator, request, 'request a pickup')
        self._require_direction(load, LoadDirection.OUTBOUND)
        LoadStateMachine.require(load.status, LoadStatus.NEW, LoadStatus.APPROVED, label=load.label)

        items = self._lock_items(load, item_ids)
        staged = []
        for item in items:
            if item.status == InventoryStatus.PENDING_PICKUP and item.disposition_load_id == load.id:
                continue
            if item.status != InventoryStatus.IN_STORAGE:
                raise ItemNotPickupableError(
                    f"Item {item.reference} (id {item.id}) is {item.status.value} and cannot be staged for pickup",
                    item_id=item.id,
                    status=item.status.value,
                    disposition_load_id=item.disposition_load_id,
                )
            item.status = InventoryStateMachine.transition(item.status, InventoryStatus.PENDING_PICKUP)
            item.disposition_load_id = load.id
            item.touch(str(self.operator))
            staged.append(item)

        quantity = sum(item.quantity for item in staged)
        self.effects.record_audit('TruckingLoad', load.id, {
            'request_id': request.id,
            'sequence_number': load.sequence_number,
            'staged_item_ids': [item.id for item in staged],
            'staged_quantity': quantity,
            'message': YardNarrator.pickup_requested(request, load, quantity),
        })
        return load

    def complete_outbound(self, load_id: int, picked_up_item_ids: Sequence[int], notes: Optional[str] = None) -> TruckingLoad:
        """
        Complete an outbound load: deliver the picked-up items and free their racks.

        Raises:
            NotFoundError, UnauthorizedError, InvalidStateError, SequenceViolationError,
            InvalidAssignmentError, ItemNotPickupableError
        """
        load = lock_load(load_id)
        OperatorAccessPolicy.require_privileged(self.operator, 'complete loads')
        self._require_direction(load, LoadDirection.OUTBOUND)
        LoadStateMachine.require(load.status, LoadStatus.APPROVED, LoadStatus.IN_TRANSIT, label=load.label)

        request = lock_request(load.request_id)
        RequestStateMachine.require(request.status, RequestStatus.APPROVED, label=f"Request {request.reference_code}")
        LoadSequencePolicy.check_predecessors_resolved(load)

        items = self._lock_items(load, picked_up_item_ids)
        for item in items:
            pickupable = (
                item.status == InventoryStatus.IN_STORAGE
                or (item.status == InventoryStatus.PENDING_PICKUP and item.disposition_load_id in (None, load.id))
            )
            if not pickupable:
                raise ItemNotPickupableError(
                    f"Item {item.reference} (id {item.id}) is {item.status.value} and cannot leave on {load.label}",
                    item_id=item.id,
                    status=item.status.value,
                    disposition_load_id=item.disposition_load_id,
                )

        # Lock every rack this operation may touch in one ordered pass
        allocations = list(request.allocations)
        unit_ids = {item.storage_unit_id for item in items}
        unit_ids.update(a.storage_unit_id for a in allocations if a.reserved_quantity)
        units_by_id = self.ledger.lock_units(unit_ids)

        now = datetime.utcnow()
        freed: Dict[int, int] = {}
        for item in items:
            item.status = InventoryStateMachine.transition(item.status, InventoryStatus.DELIVERED)
            item.disposition_load_id = load.id
            item.delivered_at = now
            item.touch(str(self.operator))
            freed[item.storage_unit_id] = freed.get(item.storage_unit_id, 0) + item.quantity

        for unit_id in sorted(freed):
            if freed[unit_id]:
                self.ledger.release(units_by_id[unit_id], freed[unit_id])

        selected = {item.id for item in items}
        left_behind = (
            InventoryItem.query
            .filter(
                InventoryItem.disposition_load_id == load.id,
                InventoryItem.status == InventoryStatus.PENDING_PICKUP,
            )
            .all()
        )
        for item in left_behind:
            if item.id in selected:
                continue
            item.status = InventoryStateMachine.transition(item.status, InventoryStatus.IN_STORAGE)
            item.disposition_load_id = None
            item.touch(str(self.operator))

        delivered = sum(item.quantity for item in items)
        load.status = LoadStateMachine.transition(load.status, LoadStatus.COMPLETED)
        load.completed_quantity = delivered
        load.completed_at = now
        load.completed_by = str(self.operator)
        load.touch(str(self.operator))
        if notes:
            load.append_note(notes)

        db.session.flush()

        request_completed = RequestCloser(self.effects, self.ledger).close_if_done(request, units_by_id)

        message = YardNarrator.outbound_completed(request, load, delivered, request_completed)
        self.effects.record_audit('TruckingLoad', load.id, {
            'request_id': request.id,
            'sequence_number': load.sequence_number,
            'delivered_item_ids': sorted(selected),
            'delivered_quantity': delivered,
            'released_by_unit': {units_by_id[unit_id].name: quantity for unit_id, quantity in sorted(freed.items())},
            'request_completed': request_completed,
            'message': message,
        })
        self.effects.enqueue_notification('outbound_load_completed', {
            'requestId': request.id,
            'referenceCode': request.reference_code,
            'owner': request.owner,
            'contactEmail': request.contact_email,
            'loadId': load.id,
            'sequenceNumber': load.sequence_number,
            'deliveredQuantity': delivered,
            'requestCompleted': request_completed,
            'message': message,
        })
        return load

    # ------------------------------------------------------------------ helpers

    @staticmethod
    def _require_direction(load: TruckingLoad, direction: LoadDirection) -> None:
        if load.direction != direction:
            raise InvalidStateError(
                f"{load.label} is not an {direction.value.lower()} load",
                load_id=load.id,
                direction=load.direction.value,
                expected_direction=direction.value,
            )

    def _lock_items(self, load: TruckingLoad, item_ids: Sequence[int]) -> List[InventoryItem]:
        """
        Lock the referenced items of the load's request.

        Raises:
            InvalidAssignmentError: On an empty or malformed id list
            NotFoundError: If an id does not exist
            UnauthorizedError: If an item belongs to another request
        """
        if not item_ids:
            raise InvalidAssignmentError("At least one inventory item must be selected")
        for item_id in item_ids:
            if not isinstance(item_id, int) or isinstance(item_id, bool):
                raise InvalidAssignmentError(f"Inventory item id must be an integer, got {item_id!r}")

        wanted = sorted(set(item_ids))
        items = (
            InventoryItem.query
            .filter(InventoryItem.id.in_(wanted))
            .order_by(InventoryItem.id.asc())
            .with_for_update()
            .populate_existing()
            .all()
        )
        found = {item.id for item in items}
        missing = [item_id for item_id in wanted if item_id not in found]
        if missing:
            raise NotFoundError(
                f"Inventory item(s) not found: {', '.join(str(item_id) for item_id in missing)}",
                missing_item_ids=missing,
            )

        foreign = [item.id for item in items if item.request_id != load.request_id]
        if foreign:
            raise UnauthorizedError(
                f"Cross-tenant operation denied: item(s) {', '.join(str(i) for i in foreign)} "
                f"do not belong to the request of {load.label}",
                item_ids=foreign,
                load_id=load.id,
            )
        return items
