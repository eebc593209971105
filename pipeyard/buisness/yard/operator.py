from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Operator:
    """
    Caller identity as resolved upstream.

    The engine performs no authentication: identity, tenant and the privileged
    flag arrive already decided by the admin/customer-facing layer.
    """
    identity: str
    is_privileged: bool = False
    tenant: str | None = None

    def __str__(self):
        return self.identity


SYSTEM_OPERATOR = Operator(identity='system', is_privileged=True)
