"""
Capacity Report Service
Read-only views of rack capacity for the yard dashboard and for consistency checks.
"""

from typing import Dict, List
from sqlalchemy import func
from pipeyard import db
from pipeyard.data.inventory_item import InventoryItem
from pipeyard.data.statuses import OCCUPYING_INVENTORY_STATUSES
from pipeyard.data.storage_request import UnitAllocation
from pipeyard.data.storage_unit import StorageUnit
from pipeyard.logger import get_logger

logger = get_logger("pipeyard.services.yard.capacity_report")


class CapacityReportService:
    """
    Service for capacity presentation data.

    Provides methods for:
    - Listing racks with their availability
    - Reconciling each rack's counter against stored goods and reservations
    """

    @staticmethod
    def list_units(area=None) -> List[Dict]:
        query = StorageUnit.query
        if area:
            query = query.filter(StorageUnit.area == area)
        return [unit.to_dict(include_audit_fields=False) for unit in query.order_by(StorageUnit.name.asc())]

    @staticmethod
    def reconcile() -> List[Dict]:
        """
        Compare every rack's occupied counter with what should occupy it.

        Returns:
            list of dicts: unit id/name, occupied, stored, reserved, expected, in_sync
        """
        stored_rows = (
            db.session.query(InventoryItem.storage_unit_id, func.coalesce(func.sum(InventoryItem.quantity), 0))
            .filter(InventoryItem.status.in_(OCCUPYING_INVENTORY_STATUSES))
            .group_by(InventoryItem.storage_unit_id)
            .all()
        )
        reserved_rows = (
            db.session.query(UnitAllocation.storage_unit_id, func.coalesce(func.sum(UnitAllocation.reserved_quantity), 0))
            .group_by(UnitAllocation.storage_unit_id)
            .all()
        )
        stored = {unit_id: int(total) for unit_id, total in stored_rows}
        reserved = {unit_id: int(total) for unit_id, total in reserved_rows}

        report = []
        for unit in StorageUnit.query.order_by(StorageUnit.id.asc()):
            expected = stored.get(unit.id, 0) + reserved.get(unit.id, 0)
            in_sync = expected == unit.occupied
            if not in_sync:
                logger.warning(
                    f"Unit {unit.name} out of sync: occupied {unit.occupied}, "
                    f"stored {stored.get(unit.id, 0)} + reserved {reserved.get(unit.id, 0)}"
                )
            report.append({
                'storage_unit_id': unit.id,
                'name': unit.name,
                'capacity': unit.capacity,
                'occupied': unit.occupied,
                'stored': stored.get(unit.id, 0),
                'reserved': reserved.get(unit.id, 0),
                'expected': expected,
                'in_sync': in_sync,
            })
        return report
