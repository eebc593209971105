from pipeyard import db
from pipeyard.data.yard_record_base import YardRecordBase
from pipeyard.data.statuses import InventoryStatus, enum_column_type


class InventoryItem(YardRecordBase):
    """Pipe placed in the yard by a completed inbound load"""
    __tablename__ = 'inventory_items'

    request_id = db.Column(db.Integer, db.ForeignKey('storage_requests.id'), nullable=False)
    origin_load_id = db.Column(db.Integer, db.ForeignKey('trucking_loads.id'), nullable=True)
    disposition_load_id = db.Column(db.Integer, db.ForeignKey('trucking_loads.id'), nullable=True)
    storage_unit_id = db.Column(db.Integer, db.ForeignKey('storage_units.id'), nullable=True)

    # Manifest line this item came from (null for loads without manifest data)
    manifest_line_ref = db.Column(db.Integer, nullable=True)
    reference = db.Column(db.String(100), nullable=False)  # Serial/heat number or LEGACY-{load id}

    quantity = db.Column(db.Integer, nullable=False)
    length_ft = db.Column(db.Float, nullable=True)
    weight_lbs_ft = db.Column(db.Float, nullable=True)
    grade = db.Column(db.String(50), nullable=True)
    outer_diameter_in = db.Column(db.Float, nullable=True)

    status = db.Column(enum_column_type(db, InventoryStatus, 'inventory_status'),
                       nullable=False, default=InventoryStatus.PENDING_DELIVERY)
    stored_at = db.Column(db.DateTime, nullable=True)
    delivered_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.CheckConstraint('quantity >= 0', name='ck_inventory_quantity_non_negative'),
    )

    request = db.relationship('StorageRequest', back_populates='inventory_items')
    origin_load = db.relationship('TruckingLoad', foreign_keys=[origin_load_id])
    disposition_load = db.relationship('TruckingLoad', foreign_keys=[disposition_load_id])
    storage_unit = db.relationship('StorageUnit')

    def __repr__(self):
        return f'<InventoryItem {self.reference} qty={self.quantity} {self.status.value if self.status else None}>'
