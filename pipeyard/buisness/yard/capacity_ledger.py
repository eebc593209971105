"""
CapacityLedger - the only writer of StorageUnit.occupied

Every counter change goes through allocate/release/set_occupied inside an
atomic unit. Units are read with a row lock (SELECT ... FOR UPDATE) taken in
ascending id order so that two operations touching the same racks always lock
them in the same order.
"""

from typing import Dict, Iterable, List, TYPE_CHECKING
from pipeyard.buisness.yard.errors import InvalidAssignmentError, NotFoundError
from pipeyard.buisness.yard.policies.capacity_policy import CapacityPolicy
from pipeyard.data.storage_unit import StorageUnit
from pipeyard.logger import get_logger, yard_context

if TYPE_CHECKING:
    from pipeyard.buisness.yard.transaction import EffectBundle

logger = get_logger("pipeyard.buisness.yard.capacity_ledger")


class CapacityLedger:
    """
    Capacity counter operations bound to one atomic unit.

    Responsibilities:
    - Lock storage unit rows in a deterministic order
    - Check the capacity invariant before and after each counter change
    - Register touched units with the effect bundle for the pre-commit re-check
    """

    def __init__(self, effects: 'EffectBundle'):
        self.effects = effects

    def lock_units(self, unit_ids: Iterable[int]) -> Dict[int, StorageUnit]:
        """
        Lock the given units in ascending id order.

        Returns:
            dict: unit id -> locked StorageUnit, in id order

        Raises:
            InvalidAssignmentError: If any id does not reference an existing unit
        """
        wanted = sorted(set(unit_ids))
        if not wanted:
            return {}

        units = (
            StorageUnit.query
            .filter(StorageUnit.id.in_(wanted))
            .order_by(StorageUnit.id.asc())
            .with_for_update()
            .populate_existing()
            .all()
        )
        locked = {unit.id: unit for unit in units}

        missing = [unit_id for unit_id in wanted if unit_id not in locked]
        if missing:
            raise InvalidAssignmentError(
                f"Unknown storage unit id(s): {', '.join(str(unit_id) for unit_id in missing)}",
                missing_unit_ids=missing,
            )

        for unit in units:
            CapacityPolicy.assert_unit_invariant(unit)
        return locked

    def lock_unit(self, unit_id: int) -> StorageUnit:
        """
        Raises:
            NotFoundError: If the unit does not exist
        """
        unit = (
            StorageUnit.query
            .filter(StorageUnit.id == unit_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if unit is None:
            raise NotFoundError(f"Storage unit {unit_id} not found", storage_unit_id=unit_id)
        CapacityPolicy.assert_unit_invariant(unit)
        return unit

    def allocate(self, unit: StorageUnit, quantity: int) -> int:
        """Increase occupied by quantity; returns the new counter"""
        return self._apply(unit, unit.occupied + quantity)

    def release(self, unit: StorageUnit, quantity: int) -> int:
        """Decrease occupied by quantity; returns the new counter"""
        return self._apply(unit, unit.occupied - quantity)

    def set_occupied(self, unit: StorageUnit, value: int) -> int:
        """Overwrite the counter (manual adjustments only)"""
        return self._apply(unit, value)

    def _apply(self, unit: StorageUnit, new_occupied: int) -> int:
        CapacityPolicy.assert_unit_invariant(unit)
        CapacityPolicy.assert_unit_invariant(unit, occupied=new_occupied)

        old_occupied = unit.occupied
        unit.occupied = new_occupied
        unit.touch(str(self.effects.operator))
        self.effects.track_unit(unit)

        logger.debug(
            f"Unit {unit.name} occupied {old_occupied} -> {new_occupied} ({self.effects.action})",
            extra=yard_context(self.effects.action, self.effects.operator, storage_unit=unit.name,
                               occupied_before=old_occupied, occupied_after=new_occupied),
        )
        return new_occupied

    @staticmethod
    def ordered(units_by_id: Dict[int, StorageUnit], unit_ids: Iterable[int]) -> List[StorageUnit]:
        """Locked units re-ordered to match an assignment order"""
        return [units_by_id[unit_id] for unit_id in unit_ids]
