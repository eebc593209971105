from datetime import datetime
from pipeyard import db
from pipeyard.buisness.core.data_insertion_mixin import DataInsertionMixin


class NotificationIntent(db.Model, DataInsertionMixin):
    """
    Queued notification for the external delivery worker.

    The engine only inserts rows; `processed` is flipped by the worker.
    """
    __tablename__ = 'notification_intents'

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(64), nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    processed = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.Index('ix_notification_intents_unprocessed', 'processed', 'created_at'),
    )

    def __repr__(self):
        return f'<NotificationIntent {self.type} processed={self.processed}>'
