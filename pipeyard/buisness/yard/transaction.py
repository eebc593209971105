"""
TransactionCoordinator - atomic unit for every capacity-affecting operation

Contract for each public workflow operation:
1. read-based validation first (locking reads),
2. writes,
3. exactly one AuditRecord and zero-or-one NotificationIntent, collected in an
   EffectBundle and written by the coordinator in the same commit,
4. any exception discards every write of the unit (session rollback).
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from pipeyard import db
from pipeyard.buisness.yard.errors import YardDomainError
from pipeyard.buisness.yard.policies.capacity_policy import CapacityPolicy
from pipeyard.data.audit_record import AuditRecord
from pipeyard.data.notification_intent import NotificationIntent
from pipeyard.logger import get_logger, yard_context
from pipeyard.utils.logging_sanitizer import sanitize_exception_message

logger = get_logger("pipeyard.buisness.yard.transaction")


@dataclass(frozen=True)
class ReconciliationWarning:
    """Non-fatal mismatch committed alongside the primary mutation"""
    load_id: int
    reported_quantity: int
    manifest_quantity: int
    message: str

    def to_dict(self):
        return {
            'kind': 'ReconciliationWarning',
            'load_id': self.load_id,
            'reported_quantity': self.reported_quantity,
            'manifest_quantity': self.manifest_quantity,
            'message': self.message,
        }


class EffectBundle:
    """
    Side effects of one logical operation.

    Managers record the audit entry, the notification intent and any warnings
    here; the coordinator writes them just before commit.
    """

    def __init__(self, action: str, operator):
        self.action = action
        self.operator = operator
        self.audit: Optional[Dict[str, Any]] = None
        self.notification: Optional[Dict[str, Any]] = None
        self.warnings: List[ReconciliationWarning] = []
        self.touched_units: Dict[int, Any] = {}

    def record_audit(self, entity_type: str, entity_id: Optional[int], details: Dict[str, Any]) -> None:
        if self.audit is not None:
            raise RuntimeError(f"{self.action} already recorded its audit entry")
        self.audit = {'entity_type': entity_type, 'entity_id': entity_id, 'details': details}

    def enqueue_notification(self, notification_type: str, payload: Dict[str, Any]) -> None:
        if self.notification is not None:
            raise RuntimeError(f"{self.action} already enqueued a notification")
        self.notification = {'type': notification_type, 'payload': payload}

    def warn(self, warning: ReconciliationWarning) -> None:
        self.warnings.append(warning)

    def track_unit(self, unit) -> None:
        self.touched_units[unit.id] = unit

    def apply(self) -> None:
        """Write the audit row and the notification row into the current session."""
        if self.audit is None:
            raise RuntimeError(f"{self.action} finished without an audit entry")

        db.session.add(AuditRecord(
            operator=str(self.operator),
            action=self.action,
            entity_type=self.audit['entity_type'],
            entity_id=self.audit['entity_id'],
            details=self.audit['details'],
        ))

        if self.notification is not None:
            db.session.add(NotificationIntent(
                type=self.notification['type'],
                payload=self.notification['payload'],
                processed=False,
            ))


class TransactionCoordinator:
    """
    Wraps an operation in a single all-or-nothing database transaction.

    Usage:
        with TransactionCoordinator().atomic('APPROVE_REQUEST', operator) as effects:
            ...validate, mutate, effects.record_audit(...)
    """

    @contextmanager
    def atomic(self, action: str, operator):
        effects = EffectBundle(action, operator)
        context = yard_context(action, operator)
        logger.debug(f"{action} started by {operator}", extra=context)

        try:
            yield effects

            for unit in effects.touched_units.values():
                CapacityPolicy.assert_unit_invariant(unit)

            effects.apply()
            db.session.commit()
        except YardDomainError as e:
            db.session.rollback()
            logger.warning(f"{action} by {operator} rolled back: [{e.kind}] {e.message}",
                           extra={**context, "error_kind": e.kind})
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"{action} by {operator} rolled back after storage failure: {sanitize_exception_message(e)}",
                         extra={**context, "error_kind": "StorageFailure"})
            raise
        except Exception:
            db.session.rollback()
            logger.exception(f"{action} by {operator} rolled back after unexpected error", extra=context)
            raise

        logger.info(f"{action} committed by {operator}", extra=context)
