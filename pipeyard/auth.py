"""
Operator resolution for the JSON API.

The engine does not authenticate anyone. The trusted gateway in front of it
forwards the already-resolved caller in request headers; Flask-Login's
request_loader turns them into current_user for each request.
"""

from flask import current_app, jsonify
from flask_login import UserMixin
from pipeyard import login_manager
from pipeyard.buisness.yard.operator import Operator
from pipeyard.logger import get_logger

logger = get_logger("pipeyard.auth")

_TRUE_VALUES = ('true', '1', 'yes', 'on')


class ApiOperator(UserMixin):
    """Flask-Login user wrapping the resolved Operator"""

    def __init__(self, operator: Operator):
        self.operator = operator

    def get_id(self):
        return self.operator.identity

    @property
    def identity(self):
        return self.operator.identity

    @property
    def is_privileged(self):
        return self.operator.is_privileged

    @property
    def tenant(self):
        return self.operator.tenant


@login_manager.request_loader
def load_operator_from_request(request):
    identity = (request.headers.get(current_app.config['OPERATOR_ID_HEADER']) or '').strip()
    if not identity:
        return None

    tenant = (request.headers.get(current_app.config['OPERATOR_TENANT_HEADER']) or '').strip() or None
    privileged = (request.headers.get(current_app.config['OPERATOR_PRIVILEGED_HEADER']) or '').strip().lower()

    operator = Operator(identity=identity, is_privileged=privileged in _TRUE_VALUES, tenant=tenant)
    logger.debug(f"Resolved operator {operator.identity} (privileged={operator.is_privileged}, tenant={operator.tenant})")
    return ApiOperator(operator)


@login_manager.unauthorized_handler
def operator_missing():
    return jsonify({
        'success': False,
        'error_kind': 'Unauthorized',
        'error_message': 'No operator identity supplied by the gateway',
    }), 401
