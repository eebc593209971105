"""
Workflow Service
Entry points of the yard workflow engine.

Each method opens one atomic unit, delegates to the business-layer manager and
turns the outcome into an OperationResult. Domain errors and storage failures
never escape as exceptions; anything else is a programming error and does.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence
from datetime import datetime
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from pipeyard import db
from pipeyard.buisness.yard.completion_processor import CompletionProcessor
from pipeyard.buisness.yard.errors import NotFoundError, YardDomainError
from pipeyard.buisness.yard.load_sequencer import LoadSequencer
from pipeyard.buisness.yard.operator import Operator
from pipeyard.buisness.yard.request_manager import RequestLifecycleManager
from pipeyard.buisness.yard.storage_unit_manager import DEFAULT_MIN_REASON_LENGTH, StorageUnitManager
from pipeyard.buisness.yard.transaction import EffectBundle, TransactionCoordinator
from pipeyard.data.inventory_item import InventoryItem
from pipeyard.data.storage_request import StorageRequest
from pipeyard.data.trucking_load import TruckingLoad
from pipeyard.logger import get_logger
from pipeyard.utils.logging_sanitizer import sanitize_exception_message

logger = get_logger("pipeyard.services.yard.workflow")

STORAGE_FAILURE = 'StorageFailure'


@dataclass
class OperationResult:
    """Structured outcome of one workflow operation"""
    success: bool
    snapshot: Optional[Dict[str, Any]] = None
    error_kind: Optional[str] = None
    error_message: Optional[str] = None
    error_context: Dict[str, Any] = field(default_factory=dict)
    warnings: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def ok(cls, snapshot, warnings=None):
        return cls(success=True, snapshot=snapshot, warnings=list(warnings or []))

    @classmethod
    def failed(cls, kind, message, context=None):
        return cls(success=False, error_kind=kind, error_message=message, error_context=dict(context or {}))

    def to_dict(self):
        return {
            'success': self.success,
            'snapshot': self.snapshot,
            'error_kind': self.error_kind,
            'error_message': self.error_message,
            'error_context': self.error_context,
            'warnings': self.warnings,
        }


def request_snapshot(request: StorageRequest) -> Dict[str, Any]:
    return request.to_dict()


def load_snapshot(load: TruckingLoad) -> Dict[str, Any]:
    """Load with its request status and the items it brought in or took out"""
    result = load.to_dict()
    result['label'] = load.label
    result['request_status'] = load.request.status.value
    result['received_items'] = [
        item.to_dict(include_audit_fields=False)
        for item in InventoryItem.query.filter_by(origin_load_id=load.id).order_by(InventoryItem.id.asc())
    ]
    result['outbound_items'] = [
        item.to_dict(include_audit_fields=False)
        for item in InventoryItem.query.filter_by(disposition_load_id=load.id).order_by(InventoryItem.id.asc())
    ]
    return result


class WorkflowService:
    """
    Service facade over the workflow managers.

    Provides one method per workflow operation, plus read helpers for snapshots.
    """

    def __init__(self, coordinator: Optional[TransactionCoordinator] = None, min_reason_length: Optional[int] = None):
        self.coordinator = coordinator or TransactionCoordinator()
        self._min_reason_length = min_reason_length

    @property
    def min_reason_length(self) -> int:
        if self._min_reason_length is not None:
            return self._min_reason_length
        return current_app.config.get('YARD_MIN_ADJUSTMENT_REASON', DEFAULT_MIN_REASON_LENGTH)

    def _run(
        self,
        action: str,
        operator: Operator,
        work: Callable[[EffectBundle], Any],
        snapshot: Callable[[Any], Dict[str, Any]],
    ) -> OperationResult:
        """
        Run work inside one atomic unit and convert the outcome.

        Args:
            action: Audit action name
            operator: Resolved caller
            work: Callable receiving the EffectBundle and returning the primary entity
            snapshot: Callable turning the committed entity into a dict
        """
        try:
            with self.coordinator.atomic(action, operator) as effects:
                entity = work(effects)
        except YardDomainError as e:
            return OperationResult.failed(e.kind, e.message, e.context)
        except SQLAlchemyError as e:
            return OperationResult.failed(STORAGE_FAILURE, f"Storage failure during {action}: {e.__class__.__name__}")

        return OperationResult.ok(snapshot(entity), [warning.to_dict() for warning in effects.warnings])

    # Requests

    def submit_request(
        self,
        operator: Operator,
        reference_code: str,
        owner: str,
        requested_quantity: int,
        contact_email: Optional[str] = None,
        item_description: Optional[str] = None,
    ) -> OperationResult:
        return self._run(
            'SUBMIT_REQUEST', operator,
            lambda effects: RequestLifecycleManager(effects).submit(
                reference_code, owner, requested_quantity,
                contact_email=contact_email, item_description=item_description,
            ),
            request_snapshot,
        )

    def approve_request(
        self,
        operator: Operator,
        request_id: int,
        unit_assignments: Sequence[Any],
        notes: Optional[str] = None,
    ) -> OperationResult:
        return self._run(
            'APPROVE_REQUEST', operator,
            lambda effects: RequestLifecycleManager(effects).approve(request_id, unit_assignments, notes),
            request_snapshot,
        )

    def reject_request(self, operator: Operator, request_id: int, reason: str) -> OperationResult:
        return self._run(
            'REJECT_REQUEST', operator,
            lambda effects: RequestLifecycleManager(effects).reject(request_id, reason),
            request_snapshot,
        )

    # Loads

    def can_book_next_load(self, request_id: int, direction) -> OperationResult:
        """Advisory read; never opens a write transaction"""
        try:
            check = LoadSequencer.can_book_next_load(request_id, direction)
        except YardDomainError as e:
            return OperationResult.failed(e.kind, e.message, e.context)
        except SQLAlchemyError as e:
            logger.error(f"Booking check for request {request_id} failed: {sanitize_exception_message(e)}")
            return OperationResult.failed(STORAGE_FAILURE, f"Storage failure during booking check: {e.__class__.__name__}")
        return OperationResult.ok(check.to_dict())

    def book_load(
        self,
        operator: Operator,
        request_id: int,
        direction,
        planned_quantity: Optional[int] = None,
        planned_length_ft: Optional[float] = None,
        planned_weight_lbs: Optional[float] = None,
        scheduled_start: Optional[datetime] = None,
        scheduled_end: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> OperationResult:
        return self._run(
            'BOOK_LOAD', operator,
            lambda effects: LoadSequencer(effects).book_load(
                request_id, direction,
                planned_quantity=planned_quantity,
                planned_length_ft=planned_length_ft,
                planned_weight_lbs=planned_weight_lbs,
                scheduled_start=scheduled_start,
                scheduled_end=scheduled_end,
                notes=notes,
            ),
            load_snapshot,
        )

    def approve_load(self, operator: Operator, load_id: int) -> OperationResult:
        return self._run(
            'APPROVE_LOAD', operator,
            lambda effects: LoadSequencer(effects).approve_load(load_id),
            load_snapshot,
        )

    def mark_in_transit(self, operator: Operator, load_id: int) -> OperationResult:
        return self._run(
            'MARK_LOAD_IN_TRANSIT', operator,
            lambda effects: LoadSequencer(effects).mark_in_transit(load_id),
            load_snapshot,
        )

    def cancel_load(self, operator: Operator, load_id: int, reason: Optional[str] = None) -> OperationResult:
        return self._run(
            'CANCEL_LOAD', operator,
            lambda effects: LoadSequencer(effects).cancel_load(load_id, reason),
            load_snapshot,
        )

    # Completion

    def request_pickup(self, operator: Operator, load_id: int, item_ids: Sequence[int]) -> OperationResult:
        return self._run(
            'REQUEST_PICKUP', operator,
            lambda effects: CompletionProcessor(effects).request_pickup(load_id, item_ids),
            load_snapshot,
        )

    def complete_inbound(
        self,
        operator: Operator,
        load_id: int,
        actual_totals,
        manifest_lines: Optional[Sequence[Dict[str, Any]]] = None,
        notes: Optional[str] = None,
    ) -> OperationResult:
        return self._run(
            'COMPLETE_INBOUND_LOAD', operator,
            lambda effects: CompletionProcessor(effects).complete_inbound(load_id, actual_totals, manifest_lines, notes),
            load_snapshot,
        )

    def complete_outbound(
        self,
        operator: Operator,
        load_id: int,
        picked_up_item_ids: Sequence[int],
        notes: Optional[str] = None,
    ) -> OperationResult:
        return self._run(
            'COMPLETE_OUTBOUND_LOAD', operator,
            lambda effects: CompletionProcessor(effects).complete_outbound(load_id, picked_up_item_ids, notes),
            load_snapshot,
        )

    # Storage units

    def manual_adjustment(self, operator: Operator, unit_id: int, new_occupied: int, reason: str) -> OperationResult:
        min_length = self.min_reason_length
        return self._run(
            'MANUAL_UNIT_ADJUSTMENT', operator,
            lambda effects: StorageUnitManager(effects, min_reason_length=min_length).manual_adjustment(
                unit_id, new_occupied, reason,
            ),
            lambda unit: unit.to_dict(),
        )

    # Reads

    @staticmethod
    def get_request(request_id: int) -> OperationResult:
        request = db.session.get(StorageRequest, request_id)
        if request is None:
            error = NotFoundError(f"Storage request {request_id} not found", request_id=request_id)
            return OperationResult.failed(error.kind, error.message, error.context)
        return OperationResult.ok(request_snapshot(request))

    @staticmethod
    def get_load(load_id: int) -> OperationResult:
        load = db.session.get(TruckingLoad, load_id)
        if load is None:
            error = NotFoundError(f"Trucking load {load_id} not found", load_id=load_id)
            return OperationResult.failed(error.kind, error.message, error.context)
        return OperationResult.ok(load_snapshot(load))
