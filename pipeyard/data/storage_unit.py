"""
StorageUnit Model

A physical rack in the yard with a bounded capacity measured in joints.
`occupied` is the capacity counter; it is only ever changed by the capacity
ledger inside an atomic unit.
"""

from pipeyard import db
from pipeyard.data.yard_record_base import YardRecordBase


class StorageUnit(YardRecordBase):
    """Rack with a joint capacity and an occupied counter"""
    __tablename__ = 'storage_units'

    name = db.Column(db.String(50), unique=True, nullable=False)  # e.g. "A-A1-5"
    area = db.Column(db.String(50), nullable=True)  # Yard area / row label
    capacity = db.Column(db.Integer, nullable=False)
    occupied = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.CheckConstraint('capacity >= 0', name='ck_storage_unit_capacity_non_negative'),
        db.CheckConstraint('occupied >= 0 AND occupied <= capacity', name='ck_storage_unit_occupied_bounds'),
    )

    allocations = db.relationship('UnitAllocation', back_populates='storage_unit', lazy='dynamic')

    def __repr__(self):
        return f'<StorageUnit {self.name} {self.occupied}/{self.capacity}>'

    @property
    def available(self):
        """Joints that can still be allocated to this unit"""
        return self.capacity - (self.occupied or 0)

    def to_dict(self, include_audit_fields=True):
        result = super().to_dict(include_audit_fields=include_audit_fields)
        result['available'] = self.available
        return result
