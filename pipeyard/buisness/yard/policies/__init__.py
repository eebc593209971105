"""
Policy classes for yard workflow business rules

Policies are composable validation rules that enforce business invariants.
They raise domain exceptions when violations are detected.
"""

from pipeyard.buisness.yard.policies.capacity_policy import CapacityPolicy
from pipeyard.buisness.yard.policies.load_sequence_policy import LoadSequencePolicy
from pipeyard.buisness.yard.policies.operator_policy import OperatorAccessPolicy

__all__ = [
    'CapacityPolicy',
    'LoadSequencePolicy',
    'OperatorAccessPolicy',
]
