"""
RequestCloser - Completes a storage request once nothing of it is left in the yard

Shared by inbound completion, outbound completion and inbound load cancellation.
A request closes when:

- at least one inbound load of it was completed (something was received),
- no inbound load of it is still New/Approved/InTransit, and
- none of its items holding pipe is outside a terminal inventory status.

Any reservation still held is released and zero-quantity receipt records are
closed out as Delivered.
"""

from datetime import datetime
from typing import Dict, Optional, TYPE_CHECKING
from pipeyard.buisness.yard.capacity_ledger import CapacityLedger
from pipeyard.buisness.yard.state_machine import InventoryStateMachine, RequestStateMachine
from pipeyard.data.inventory_item import InventoryItem
from pipeyard.data.statuses import (
    InventoryStatus,
    LoadDirection,
    LoadStatus,
    OPEN_LOAD_STATUSES,
    RequestStatus,
)
from pipeyard.data.storage_unit import StorageUnit
from pipeyard.data.trucking_load import TruckingLoad
from pipeyard.logger import get_logger, yard_context

if TYPE_CHECKING:
    from pipeyard.buisness.yard.transaction import EffectBundle

logger = get_logger("pipeyard.buisness.yard.request_closer")

TERMINAL_INVENTORY_STATUSES = tuple(
    status for status in InventoryStatus if InventoryStateMachine.is_terminal(status)
)


class RequestCloser:
    """
    Completion check for one locked request inside an atomic unit.

    The caller holds the request row lock and has flushed its own load and item
    changes before calling close_if_done.
    """

    def __init__(self, effects: 'EffectBundle', ledger: Optional[CapacityLedger] = None):
        self.effects = effects
        self.operator = effects.operator
        self.ledger = ledger or CapacityLedger(effects)

    def close_if_done(self, request, units_by_id: Optional[Dict[int, StorageUnit]] = None) -> bool:
        """
        Complete the request if nothing of it remains and no delivery is expected.

        Args:
            request: Locked StorageRequest
            units_by_id: Units the caller already locked; missing ones are locked here

        Returns:
            bool: True if the request moved to Completed
        """
        if RequestStateMachine.is_terminal(request.status):
            return False

        if self._count_inbound(request, LoadStatus.COMPLETED) == 0:
            return False
        if self._count_inbound(request, *OPEN_LOAD_STATUSES):
            return False

        holding_pipe = (
            InventoryItem.query
            .filter(
                InventoryItem.request_id == request.id,
                InventoryItem.quantity > 0,
                InventoryItem.status.notin_(TERMINAL_INVENTORY_STATUSES),
            )
            .count()
        )
        if holding_pipe:
            return False

        now = datetime.utcnow()
        self._release_leftover_reservation(request, units_by_id or {})
        self._close_empty_records(request, now)

        request.status = RequestStateMachine.transition(request.status, RequestStatus.COMPLETED)
        request.completed_at = now
        request.touch(str(self.operator))
        logger.info(f"Request {request.reference_code} completed by {self.operator}",
                    extra=yard_context(self.effects.action, self.operator))
        return True

    @staticmethod
    def _count_inbound(request, *statuses) -> int:
        return (
            TruckingLoad.query
            .filter(
                TruckingLoad.request_id == request.id,
                TruckingLoad.direction == LoadDirection.INBOUND,
                TruckingLoad.status.in_(statuses),
            )
            .count()
        )

    def _release_leftover_reservation(self, request, units_by_id: Dict[int, StorageUnit]) -> None:
        held = [allocation for allocation in request.allocations if allocation.reserved_quantity]
        if not held:
            return

        units = dict(units_by_id)
        missing = [a.storage_unit_id for a in held if a.storage_unit_id not in units]
        units.update(self.ledger.lock_units(missing))

        for allocation in held:
            self.ledger.release(units[allocation.storage_unit_id], allocation.reserved_quantity)
            allocation.reserved_quantity = 0
            allocation.touch(str(self.operator))

    def _close_empty_records(self, request, now: datetime) -> None:
        """Zero-quantity receipt records hold no pipe and leave with the request"""
        empty = (
            InventoryItem.query
            .filter(
                InventoryItem.request_id == request.id,
                InventoryItem.quantity == 0,
                InventoryItem.status.notin_(TERMINAL_INVENTORY_STATUSES),
            )
            .order_by(InventoryItem.id.asc())
            .with_for_update()
            .all()
        )
        for item in empty:
            item.status = InventoryStateMachine.transition(item.status, InventoryStatus.DELIVERED)
            item.delivered_at = now
            item.touch(str(self.operator))
