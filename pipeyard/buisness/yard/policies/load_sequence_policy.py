"""
Load Sequence Policy

Load N+1 of a (request, direction) pair may not be booked or acted on while
any earlier load of the same pair is still New.
"""

from typing import Optional, TYPE_CHECKING
from pipeyard.buisness.yard.errors import SequenceViolationError
from pipeyard.data.statuses import LoadStatus

if TYPE_CHECKING:
    from pipeyard.data.trucking_load import TruckingLoad


class LoadSequencePolicy:
    """
    Enforces ordered resolution of sequential loads.

    A load is unresolved while it is New. Approved, InTransit, Completed and
    Cancelled loads never block their successors.
    """

    @classmethod
    def find_blocking_load(cls, request_id: int, direction, before_sequence: Optional[int] = None) -> Optional['TruckingLoad']:
        """
        Lowest-numbered New load of the pair (optionally only those before a sequence number).
        """
        from pipeyard.data.trucking_load import TruckingLoad

        query = TruckingLoad.query.filter(
            TruckingLoad.request_id == request_id,
            TruckingLoad.direction == direction,
            TruckingLoad.status == LoadStatus.NEW,
        )
        if before_sequence is not None:
            query = query.filter(TruckingLoad.sequence_number < before_sequence)
        return query.order_by(TruckingLoad.sequence_number.asc()).first()

    @classmethod
    def check_can_book(cls, request_id: int, direction) -> None:
        """
        Raises:
            SequenceViolationError: If an earlier load of the pair is still New
        """
        blocking = cls.find_blocking_load(request_id, direction)
        if blocking is not None:
            raise SequenceViolationError(
                f"Cannot book the next {direction.value.lower()} load: {blocking.label} is still {blocking.status.value}",
                blocking_load_id=blocking.id,
                blocking_sequence_number=blocking.sequence_number,
                blocking_status=blocking.status.value,
            )

    @classmethod
    def check_predecessors_resolved(cls, load: 'TruckingLoad') -> None:
        """
        Raises:
            SequenceViolationError: If a lower-numbered load of the pair is still New
        """
        blocking = cls.find_blocking_load(load.request_id, load.direction, before_sequence=load.sequence_number)
        if blocking is not None:
            raise SequenceViolationError(
                f"Cannot act on {load.label} while {blocking.label} is still {blocking.status.value}",
                load_id=load.id,
                sequence_number=load.sequence_number,
                blocking_load_id=blocking.id,
                blocking_sequence_number=blocking.sequence_number,
                blocking_status=blocking.status.value,
            )
