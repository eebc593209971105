"""
Closed status vocabularies for every workflow entity.

Values are the strings stored in the database; the state machines in
pipeyard.buisness.yard.state_machine decide which moves between them are legal.
"""

from enum import Enum


class RequestStatus(str, Enum):
    PENDING = 'Pending'
    APPROVED = 'Approved'
    REJECTED = 'Rejected'
    COMPLETED = 'Completed'


class LoadDirection(str, Enum):
    INBOUND = 'Inbound'
    OUTBOUND = 'Outbound'


class LoadStatus(str, Enum):
    NEW = 'New'
    APPROVED = 'Approved'
    IN_TRANSIT = 'InTransit'
    COMPLETED = 'Completed'
    CANCELLED = 'Cancelled'


class InventoryStatus(str, Enum):
    PENDING_DELIVERY = 'PendingDelivery'
    IN_STORAGE = 'InStorage'
    PENDING_PICKUP = 'PendingPickup'
    IN_TRANSIT = 'InTransit'
    DELIVERED = 'Delivered'


# Statuses whose item quantity counts toward a unit's occupied counter
OCCUPYING_INVENTORY_STATUSES = (InventoryStatus.IN_STORAGE, InventoryStatus.PENDING_PICKUP)

# Loads in these statuses still have work ahead of them
OPEN_LOAD_STATUSES = (LoadStatus.NEW, LoadStatus.APPROVED, LoadStatus.IN_TRANSIT)


def enum_column_type(db, enum_cls, name):
    """String-backed enum column storing the member values ('Pending', not 'PENDING')."""
    return db.Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
