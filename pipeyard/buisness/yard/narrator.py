"""
YardNarrator - Message composer for workflow events

Produces the human-readable summaries stored in audit details and used as
notification subjects/bodies. Separates narrative formatting from transition logic.
"""

from typing import Optional, Sequence


class YardNarrator:
    """
    Composes machine-generated text for workflow events.

    All methods return plain strings.
    """

    @staticmethod
    def request_submitted(request) -> str:
        return f"Storage request {request.reference_code} submitted by {request.owner} for {request.requested_quantity} joints"

    @staticmethod
    def request_approved(request, placements: Sequence[tuple]) -> str:
        """placements: (unit_name, quantity) pairs in assignment order"""
        racks = ', '.join(f"{name} ({quantity})" for name, quantity in placements)
        return f"Request {request.reference_code} approved: {request.required_capacity} joints reserved on {racks}"

    @staticmethod
    def request_rejected(request, reason: str) -> str:
        return f"Request {request.reference_code} rejected | Reason: {reason}"

    @staticmethod
    def request_completed(request) -> str:
        return f"Request {request.reference_code} completed: all pipe has left the yard"

    @staticmethod
    def load_booked(request, load) -> str:
        planned = f" ({load.planned_quantity} joints planned)" if load.planned_quantity is not None else ""
        return f"{load.label} booked for {request.reference_code}{planned}"

    @staticmethod
    def load_approved(request, load) -> str:
        return f"{load.label} for {request.reference_code} approved"

    @staticmethod
    def load_in_transit(request, load) -> str:
        return f"{load.label} for {request.reference_code} is in transit"

    @staticmethod
    def load_cancelled(request, load, reason: Optional[str] = None, request_completed: bool = False) -> str:
        text = f"{load.label} for {request.reference_code} cancelled"
        if reason:
            text += f" | Reason: {reason}"
        if request_completed:
            text += f" | {YardNarrator.request_completed(request)}"
        return text

    @staticmethod
    def inbound_completed(request, load, stored: int, released: int, extra: int, request_completed: bool = False) -> str:
        text = f"{load.label} for {request.reference_code} received: {stored} joints stored"
        if released:
            text += f", {released} reserved joints released"
        if extra:
            text += f", {extra} joints beyond reservation"
        if request_completed:
            text += f" | {YardNarrator.request_completed(request)}"
        return text

    @staticmethod
    def outbound_completed(request, load, delivered: int, request_completed: bool) -> str:
        text = f"{load.label} for {request.reference_code} picked up: {delivered} joints left the yard"
        if request_completed:
            text += f" | {YardNarrator.request_completed(request)}"
        return text

    @staticmethod
    def pickup_requested(request, load, quantity: int) -> str:
        return f"{quantity} joints of {request.reference_code} staged for {load.label}"

    @staticmethod
    def reconciliation_mismatch(manifest_quantity: int, reported_quantity: int) -> str:
        return (
            f"Reconciliation warning: manifest lists {manifest_quantity} joints "
            f"but {reported_quantity} were reported received"
        )

    @staticmethod
    def unit_adjusted(unit, old_occupied: int, new_occupied: int, reason: str) -> str:
        return f"Storage unit {unit.name} occupied adjusted {old_occupied} → {new_occupied} | Reason: {reason}"
