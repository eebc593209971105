"""
Domain exceptions for the yard workflow engine

These exceptions represent business rule violations. They are raised by the
business layer; the transaction coordinator rolls the atomic unit back and the
service layer turns them into structured results.

Every error carries a stable `kind` (the error taxonomy exposed to callers) and a
`context` dict with the numbers/identifiers needed to correct the input.
"""


class YardDomainError(Exception):
    """Base exception for all yard workflow domain errors"""
    kind = 'DomainError'

    def __init__(self, message, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self):
        return {'kind': self.kind, 'message': self.message, 'context': self.context}


class NotFoundError(YardDomainError):
    """Raised when a referenced entity does not exist"""
    kind = 'NotFound'


class UnauthorizedError(YardDomainError):
    """Raised when the operator lacks privilege or crosses a tenant boundary"""
    kind = 'Unauthorized'


class InvalidStateError(YardDomainError):
    """Raised when an entity is in the wrong lifecycle stage for the operation"""
    kind = 'InvalidState'


class InvalidAssignmentError(YardDomainError):
    """Raised for malformed unit/quantity input"""
    kind = 'InvalidAssignment'


class InsufficientCapacityError(YardDomainError):
    """Raised when assigned units cannot hold the required quantity"""
    kind = 'InsufficientCapacity'


class OverCapacityError(InsufficientCapacityError):
    """Raised when received goods exceed reservation plus available capacity"""
    kind = 'OverCapacity'


class SequenceViolationError(YardDomainError):
    """Raised when acting on load N+1 while load N is unresolved"""
    kind = 'SequenceViolation'


class ItemNotPickupableError(InvalidStateError):
    """Raised when an inventory item cannot leave on an outbound load"""
    kind = 'ItemNotPickupable'


class CapacityInvariantError(YardDomainError):
    """Raised when a storage unit counter would leave [0, capacity]"""
    kind = 'CapacityInvariant'
