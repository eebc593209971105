from pipeyard import db
from pipeyard.data.yard_record_base import YardRecordBase
from pipeyard.data.statuses import LoadDirection, LoadStatus, enum_column_type


class TruckingLoad(YardRecordBase):
    """One truck movement (delivery or pickup) of a storage request"""
    __tablename__ = 'trucking_loads'

    request_id = db.Column(db.Integer, db.ForeignKey('storage_requests.id'), nullable=False)
    direction = db.Column(enum_column_type(db, LoadDirection, 'load_direction'), nullable=False)
    sequence_number = db.Column(db.Integer, nullable=False)
    status = db.Column(enum_column_type(db, LoadStatus, 'load_status'),
                       nullable=False, default=LoadStatus.NEW)

    # Planned totals (from booking)
    planned_quantity = db.Column(db.Integer, nullable=True)
    planned_length_ft = db.Column(db.Float, nullable=True)
    planned_weight_lbs = db.Column(db.Float, nullable=True)

    # Actual totals (null until completion)
    completed_quantity = db.Column(db.Integer, nullable=True)
    completed_length_ft = db.Column(db.Float, nullable=True)
    completed_weight_lbs = db.Column(db.Float, nullable=True)

    # Schedule window
    scheduled_start = db.Column(db.DateTime, nullable=True)
    scheduled_end = db.Column(db.DateTime, nullable=True)

    notes = db.Column(db.Text, nullable=True)

    approved_at = db.Column(db.DateTime, nullable=True)
    approved_by = db.Column(db.String(255), nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    completed_by = db.Column(db.String(255), nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancelled_by = db.Column(db.String(255), nullable=True)
    cancellation_reason = db.Column(db.Text, nullable=True)

    __table_args__ = (
        db.UniqueConstraint('request_id', 'direction', 'sequence_number', name='uix_load_request_direction_sequence'),
        db.CheckConstraint('sequence_number >= 1', name='ck_load_sequence_positive'),
    )

    request = db.relationship('StorageRequest', back_populates='loads')

    def __repr__(self):
        return f'<TruckingLoad {self.direction.value if self.direction else None} #{self.sequence_number} {self.status.value if self.status else None}>'

    @property
    def label(self):
        """Human label used in messages, e.g. 'Inbound load #2'"""
        return f"{self.direction.value} load #{self.sequence_number}"

    def append_note(self, text):
        self.notes = f"{self.notes}\n{text}" if self.notes else text
