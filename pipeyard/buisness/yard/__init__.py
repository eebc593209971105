"""
Capacity-aware workflow engine for the pipe yard.

Managers in this package validate and mutate inside an atomic unit opened by
TransactionCoordinator; they never commit themselves.
"""
