"""
Operator Access Policy

Validates that the caller may perform an operation on a tenant's data.
"""

from typing import TYPE_CHECKING
from pipeyard.buisness.yard.errors import UnauthorizedError

if TYPE_CHECKING:
    from pipeyard.buisness.yard.operator import Operator
    from pipeyard.data.storage_request import StorageRequest


class OperatorAccessPolicy:
    """
    Enforces operator privilege and tenant isolation.

    Rules:
    1. Yard-side actions (approve, reject, complete, adjust) need a privileged operator
    2. Customer-side actions (submit, book, stage pickup) are open to privileged
       operators and to operators of the owning tenant
    """

    @classmethod
    def require_privileged(cls, operator: 'Operator', action: str) -> None:
        """
        Raises:
            UnauthorizedError: If operator is missing or not privileged
        """
        if operator is None or not operator.is_privileged:
            raise UnauthorizedError(
                f"Admin privileges required to {action}",
                operator=getattr(operator, 'identity', None),
                action=action,
            )

    @classmethod
    def require_tenant_access(cls, operator: 'Operator', owner: str, action: str) -> None:
        """
        Raises:
            UnauthorizedError: If a non-privileged operator acts for another tenant
        """
        if operator is None:
            raise UnauthorizedError(f"An operator is required to {action}", action=action)
        if operator.is_privileged:
            return
        if operator.tenant is None or operator.tenant != owner:
            raise UnauthorizedError(
                f"Cross-tenant operation denied: {operator.identity} cannot {action} for {owner}",
                operator=operator.identity,
                operator_tenant=operator.tenant,
                owner=owner,
                action=action,
            )

    @classmethod
    def require_request_access(cls, operator: 'Operator', request: 'StorageRequest', action: str) -> None:
        cls.require_tenant_access(operator, request.owner, action)
