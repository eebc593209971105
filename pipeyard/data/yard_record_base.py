from pipeyard import db
from datetime import datetime
from sqlalchemy.orm import declared_attr
from pipeyard.buisness.core.data_insertion_mixin import DataInsertionMixin


class YardRecordBase(db.Model, DataInsertionMixin):
    """Abstract base class for all workflow entities with an operator audit trail"""

    __abstract__ = True

    @declared_attr
    def __tablename__(cls):
        return cls.__name__.lower() + 's'

    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    created_by = db.Column(db.String(255), nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    updated_by = db.Column(db.String(255), nullable=True)

    def touch(self, operator):
        """Stamp the updating operator (updated_at is handled by onupdate)"""
        self.updated_by = operator
