"""
StorageUnitManager - manual corrections of rack counters

Used by yard staff after a physical count. The only operation that writes
`occupied` without a matching inventory or reservation change, so it always
requires a written reason.
"""

from typing import TYPE_CHECKING
from pipeyard.buisness.yard.capacity_ledger import CapacityLedger
from pipeyard.buisness.yard.errors import InvalidAssignmentError
from pipeyard.buisness.yard.narrator import YardNarrator
from pipeyard.buisness.yard.policies.operator_policy import OperatorAccessPolicy
from pipeyard.data.storage_unit import StorageUnit

if TYPE_CHECKING:
    from pipeyard.buisness.yard.transaction import EffectBundle

DEFAULT_MIN_REASON_LENGTH = 10


class StorageUnitManager:

    def __init__(self, effects: 'EffectBundle', min_reason_length: int = DEFAULT_MIN_REASON_LENGTH):
        self.effects = effects
        self.operator = effects.operator
        self.ledger = CapacityLedger(effects)
        self.min_reason_length = min_reason_length

    def manual_adjustment(self, unit_id: int, new_occupied: int, reason: str) -> StorageUnit:
        """
        Overwrite a rack's occupied counter.

        Raises:
            NotFoundError, UnauthorizedError, InvalidAssignmentError
        """
        OperatorAccessPolicy.require_privileged(self.operator, 'adjust storage units')
        unit = self.ledger.lock_unit(unit_id)

        reason = (reason or '').strip()
        if len(reason) < self.min_reason_length:
            raise InvalidAssignmentError(
                f"Adjustment reason must be at least {self.min_reason_length} characters",
                min_length=self.min_reason_length,
                length=len(reason),
            )
        if not isinstance(new_occupied, int) or isinstance(new_occupied, bool) \
                or new_occupied < 0 or new_occupied > unit.capacity:
            raise InvalidAssignmentError(
                f"Occupied for {unit.name} must be an integer between 0 and {unit.capacity}, got {new_occupied!r}",
                storage_unit_id=unit.id,
                capacity=unit.capacity,
                new_occupied=new_occupied,
            )

        old_occupied = unit.occupied
        self.ledger.set_occupied(unit, new_occupied)

        self.effects.record_audit('StorageUnit', unit.id, {
            'unit_name': unit.name,
            'old_occupied': old_occupied,
            'new_occupied': new_occupied,
            'capacity': unit.capacity,
            'reason': reason,
            'message': YardNarrator.unit_adjusted(unit, old_occupied, new_occupied, reason),
        })
        return unit
