from datetime import datetime
from sqlalchemy import event
from pipeyard import db
from pipeyard.buisness.core.data_insertion_mixin import DataInsertionMixin


class AuditRecord(db.Model, DataInsertionMixin):
    """Append-only record of one operator action"""
    __tablename__ = 'audit_records'

    id = db.Column(db.Integer, primary_key=True)
    operator = db.Column(db.String(255), nullable=False)
    action = db.Column(db.String(50), nullable=False)
    entity_type = db.Column(db.String(50), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)
    details = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.Index('ix_audit_records_entity', 'entity_type', 'entity_id'),
    )

    def __repr__(self):
        return f'<AuditRecord {self.action} {self.entity_type}:{self.entity_id} by {self.operator}>'


@event.listens_for(AuditRecord, 'before_update')
@event.listens_for(AuditRecord, 'before_delete')
def _refuse_audit_mutation(mapper, connection, target):
    raise RuntimeError(f"Audit records are append-only (attempted change to audit record {target.id})")
