"""
Capacity Policy

Capacity checks shared by approval, over-receipt at inbound completion and
manual adjustments. All checks run before any counter is mutated.
"""

from typing import Sequence, TYPE_CHECKING
from pipeyard.buisness.yard.errors import (
    CapacityInvariantError,
    InsufficientCapacityError,
    OverCapacityError,
)

if TYPE_CHECKING:
    from pipeyard.data.storage_unit import StorageUnit


class CapacityPolicy:
    """
    Enforces the storage unit capacity invariant.

    Invariant: 0 <= occupied <= capacity for every unit, before and after every
    mutation.
    """

    @staticmethod
    def describe_units(units: Sequence['StorageUnit']) -> str:
        """'A-1 (100 available), A-2 (50 available)'"""
        return ', '.join(f"{unit.name} ({unit.available} available)" for unit in units)

    @classmethod
    def check_sufficient(cls, units: Sequence['StorageUnit'], required: int, error_cls=InsufficientCapacityError) -> None:
        """
        Check that the units together can take `required` more joints.

        Raises:
            InsufficientCapacityError (or error_cls): If total available < required
        """
        total_available = sum(max(unit.available, 0) for unit in units)
        if total_available < required:
            raise error_cls(
                f"Insufficient capacity: required {required}, available {total_available} "
                f"across units {cls.describe_units(units)}",
                required=required,
                available=total_available,
                units=[{'id': unit.id, 'name': unit.name, 'available': unit.available} for unit in units],
            )

    @classmethod
    def check_over_capacity(cls, units: Sequence['StorageUnit'], excess: int, reserved: int) -> None:
        """
        Check that goods received beyond the reservation still fit.

        Raises:
            OverCapacityError: If the excess exceeds the assigned units' free capacity
        """
        total_available = sum(max(unit.available, 0) for unit in units)
        if total_available < excess:
            raise OverCapacityError(
                f"Over capacity: received {reserved + excess} against {reserved} reserved; "
                f"{excess} extra joints need space but only {total_available} available "
                f"across units {cls.describe_units(units)}",
                reserved=reserved,
                excess=excess,
                available=total_available,
                units=[{'id': unit.id, 'name': unit.name, 'available': unit.available} for unit in units],
            )

    @classmethod
    def check_unit_quantity(cls, unit: 'StorageUnit', quantity: int) -> None:
        """
        Raises:
            InsufficientCapacityError: If one unit cannot take its explicit share
        """
        if quantity > unit.available:
            raise InsufficientCapacityError(
                f"Insufficient capacity on unit {unit.name}: assigned {quantity}, available {unit.available}",
                unit=unit.name,
                required=quantity,
                available=unit.available,
            )

    @staticmethod
    def assert_unit_invariant(unit: 'StorageUnit', occupied=None) -> None:
        """
        Validate 0 <= occupied <= capacity (for the current or a proposed value).

        Raises:
            CapacityInvariantError: If the counter is out of bounds
        """
        value = unit.occupied if occupied is None else occupied
        if value < 0 or value > unit.capacity:
            raise CapacityInvariantError(
                f"Storage unit {unit.name} occupied would be {value}, outside 0..{unit.capacity}",
                unit=unit.name,
                occupied=value,
                capacity=unit.capacity,
            )
