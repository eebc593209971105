from pipeyard import db
from pipeyard.data.yard_record_base import YardRecordBase
from pipeyard.data.statuses import RequestStatus, enum_column_type


class StorageRequest(YardRecordBase):
    """A customer's request to reserve rack capacity for a quantity of pipe"""
    __tablename__ = 'storage_requests'

    reference_code = db.Column(db.String(100), unique=True, nullable=False)
    owner = db.Column(db.String(255), nullable=False)  # Tenant (customer company)
    contact_email = db.Column(db.String(255), nullable=True)
    item_description = db.Column(db.Text, nullable=True)
    requested_quantity = db.Column(db.Integer, nullable=False)
    required_capacity = db.Column(db.Integer, nullable=False)
    status = db.Column(enum_column_type(db, RequestStatus, 'request_status'),
                       nullable=False, default=RequestStatus.PENDING)

    # Approval metadata
    approved_at = db.Column(db.DateTime, nullable=True)
    approved_by = db.Column(db.String(255), nullable=True)
    approval_notes = db.Column(db.Text, nullable=True)

    # Rejection metadata
    rejected_at = db.Column(db.DateTime, nullable=True)
    rejected_by = db.Column(db.String(255), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    completed_at = db.Column(db.DateTime, nullable=True)

    allocations = db.relationship(
        'UnitAllocation',
        back_populates='request',
        order_by='UnitAllocation.position',
        cascade='all, delete-orphan',
    )
    loads = db.relationship('TruckingLoad', back_populates='request', lazy='dynamic')
    inventory_items = db.relationship('InventoryItem', back_populates='request', lazy='dynamic')

    def __repr__(self):
        return f'<StorageRequest {self.reference_code} {self.status.value if self.status else None}>'

    @property
    def assigned_unit_ids(self):
        """Ordered storage unit ids assigned at approval"""
        return [allocation.storage_unit_id for allocation in self.allocations]

    @property
    def outstanding_reservation(self):
        return sum(allocation.reserved_quantity for allocation in self.allocations)

    def to_dict(self, include_audit_fields=True):
        result = super().to_dict(include_audit_fields=include_audit_fields)
        result['assigned_unit_ids'] = self.assigned_unit_ids
        result['outstanding_reservation'] = self.outstanding_reservation
        result['allocations'] = [allocation.to_dict(include_audit_fields=False) for allocation in self.allocations]
        return result


class UnitAllocation(YardRecordBase):
    """
    One assigned storage unit of an approved request.

    allocated_quantity is fixed at approval. reserved_quantity is the part of the
    allocation still held for goods that have not arrived yet; it shrinks as inbound
    loads complete (converted to stored inventory, or released).
    """
    __tablename__ = 'unit_allocations'

    request_id = db.Column(db.Integer, db.ForeignKey('storage_requests.id'), nullable=False)
    storage_unit_id = db.Column(db.Integer, db.ForeignKey('storage_units.id'), nullable=False)
    position = db.Column(db.Integer, nullable=False)
    allocated_quantity = db.Column(db.Integer, nullable=False)
    reserved_quantity = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.UniqueConstraint('request_id', 'storage_unit_id', name='uix_allocation_request_unit'),
        db.CheckConstraint('reserved_quantity >= 0', name='ck_allocation_reserved_non_negative'),
    )

    request = db.relationship('StorageRequest', back_populates='allocations')
    storage_unit = db.relationship('StorageUnit', back_populates='allocations')

    def __repr__(self):
        return f'<UnitAllocation request={self.request_id} unit={self.storage_unit_id} reserved={self.reserved_quantity}>'
