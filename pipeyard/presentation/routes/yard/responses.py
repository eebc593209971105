"""
Shared helpers for the yard JSON routes: operator lookup, body parsing and
OperationResult → HTTP response mapping.
"""

from datetime import datetime
from flask import jsonify, request
from flask_login import current_user
from pipeyard.buisness.yard.errors import InvalidAssignmentError
from pipeyard.services.yard.workflow_service import OperationResult
from pipeyard.utils.logging_sanitizer import sanitize_dict
from pipeyard.logger import get_logger

logger = get_logger("pipeyard.presentation.yard")

ERROR_STATUS = {
    'NotFound': 404,
    'Unauthorized': 403,
    'InvalidAssignment': 400,
    'StorageFailure': 503,
}


def current_operator():
    return current_user.operator


def json_body():
    body = request.get_json(silent=True) or {}
    logger.debug(f"{request.method} {request.path} by {current_user.identity}: {sanitize_dict(body)}")
    return body


def parse_datetime(value, field):
    """ISO-8601 string → datetime; raises InvalidAssignmentError on garbage"""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidAssignmentError(f"{field} must be an ISO-8601 timestamp, got {value!r}", field=field)


def respond(result: OperationResult, success_status=200):
    if result.success:
        return jsonify(result.to_dict()), success_status

    status = ERROR_STATUS.get(result.error_kind, 409)
    logger.info(f"{request.method} {request.path} failed [{result.error_kind}]: {result.error_message}")
    return jsonify(result.to_dict()), status


def invalid_input(error: InvalidAssignmentError):
    return respond(OperationResult.failed(error.kind, error.message, error.context))
