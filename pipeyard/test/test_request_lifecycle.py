"""
Tests for submitting, approving and rejecting storage requests.
"""
import pytest
from pipeyard.data.audit_record import AuditRecord
from pipeyard.data.notification_intent import NotificationIntent
from pipeyard.data.storage_request import UnitAllocation


def _submit(service, operator, quantity=120, reference='REQ-1', owner='Acme'):
    result = service.submit_request(operator, reference, owner, quantity, contact_email='ops@acme.test')
    assert result.success, result.error_message
    return result.snapshot


def test_submit_creates_pending_request_with_effects(service, customer):
    snapshot = _submit(service, customer)

    assert snapshot['status'] == 'Pending'
    assert snapshot['required_capacity'] == 120, "Required capacity follows the requested joints"
    assert snapshot['created_by'] == 'alice@acme'
    assert AuditRecord.query.filter_by(action='SUBMIT_REQUEST').count() == 1
    assert NotificationIntent.query.filter_by(type='storage_request_submitted').count() == 1


def test_submit_rejects_duplicates_and_foreign_tenants(service, customer, outsider):
    _submit(service, customer)

    duplicate = service.submit_request(customer, 'REQ-1', 'Acme', 10)
    assert duplicate.error_kind == 'InvalidAssignment'

    foreign = service.submit_request(outsider, 'REQ-2', 'Acme', 10)
    assert foreign.error_kind == 'Unauthorized'
    assert 'Cross-tenant operation denied' in foreign.error_message

    bad_quantity = service.submit_request(customer, 'REQ-3', 'Acme', 0)
    assert bad_quantity.error_kind == 'InvalidAssignment'


def test_approve_with_explicit_quantities(service, admin, customer, make_units, occupied_of):
    u1, u2 = make_units((100, 0), (50, 0))
    request = _submit(service, customer)

    result = service.approve_request(admin, request['id'], [(u1.id, 90), (u2.id, 30)], notes='Rack A')
    assert result.success, result.error_message
    assert result.snapshot['status'] == 'Approved'
    assert result.snapshot['approved_by'] == 'yard-admin'
    assert result.snapshot['assigned_unit_ids'] == [u1.id, u2.id]
    assert [a['allocated_quantity'] for a in result.snapshot['allocations']] == [90, 30]
    assert occupied_of(u1.id) == 90 and occupied_of(u2.id) == 30


def test_approve_preserves_assignment_order(service, admin, customer, make_units, occupied_of):
    u1, u2 = make_units((100, 0), (100, 0))
    request = _submit(service, customer, quantity=101)

    result = service.approve_request(admin, request['id'], [u2.id, u1.id])
    assert result.success, result.error_message
    assert result.snapshot['assigned_unit_ids'] == [u2.id, u1.id]
    assert occupied_of(u2.id) == 51, "The first assigned unit takes the remainder"
    assert occupied_of(u1.id) == 50


@pytest.mark.parametrize('assignments_of, kind', [
    (lambda u1, u2: [], 'InvalidAssignment'),
    (lambda u1, u2: [u1.id, u1.id], 'InvalidAssignment'),
    (lambda u1, u2: [u1.id, 999], 'InvalidAssignment'),
    (lambda u1, u2: [(u1.id, 100), (u2.id, 10)], 'InvalidAssignment'),
    (lambda u1, u2: [(u1.id, 120), (u2.id, 0)], 'InvalidAssignment'),
    (lambda u1, u2: [(u1.id, 100), u2.id], 'InvalidAssignment'),
    (lambda u1, u2: [(u1.id, 20), (u2.id, 100)], 'InsufficientCapacity'),
])
def test_approve_rejects_bad_assignments_without_mutation(
        service, admin, customer, make_units, occupied_of, assignments_of, kind):
    u1, u2 = make_units((100, 0), (50, 0))
    request = _submit(service, customer)

    result = service.approve_request(admin, request['id'], assignments_of(u1, u2))
    assert not result.success
    assert result.error_kind == kind, result.error_message
    assert occupied_of(u1.id) == 0 and occupied_of(u2.id) == 0
    assert UnitAllocation.query.count() == 0
    assert AuditRecord.query.filter_by(action='APPROVE_REQUEST').count() == 0


def test_explicit_quantity_over_one_unit_names_that_unit(service, admin, customer, make_units):
    u1, u2 = make_units((100, 0), (50, 0))
    request = _submit(service, customer)

    result = service.approve_request(admin, request['id'], [(u1.id, 60), (u2.id, 60)])
    assert result.error_kind == 'InsufficientCapacity'
    assert 'U2' in result.error_message and 'assigned 60, available 50' in result.error_message


def test_approve_requires_privilege_and_existing_request(service, customer, make_units):
    u1, = make_units((100, 0))
    request = _submit(service, customer, quantity=10)

    assert service.approve_request(customer, request['id'], [u1.id]).error_kind == 'Unauthorized'
    assert service.approve_request(customer, 999, [u1.id]).error_kind == 'NotFound'


def test_approving_twice_is_invalid_state_without_extra_capacity(service, admin, customer, make_units, occupied_of):
    u1, = make_units((100, 0))
    request = _submit(service, customer, quantity=40)

    assert service.approve_request(admin, request['id'], [u1.id]).success
    again = service.approve_request(admin, request['id'], [u1.id])

    assert again.error_kind == 'InvalidState'
    assert 'Approved' in again.error_message
    assert occupied_of(u1.id) == 40, "A repeated approval must not reserve capacity again"
    assert AuditRecord.query.filter_by(action='APPROVE_REQUEST').count() == 1


def test_reject_leaves_capacity_alone(service, admin, customer, make_units, occupied_of):
    u1, = make_units((100, 10))
    request = _submit(service, customer, quantity=40)

    missing_reason = service.reject_request(admin, request['id'], '   ')
    assert missing_reason.error_kind == 'InvalidAssignment'

    result = service.reject_request(admin, request['id'], 'No space until spring')
    assert result.success, result.error_message
    assert result.snapshot['status'] == 'Rejected'
    assert result.snapshot['rejection_reason'] == 'No space until spring'
    assert occupied_of(u1.id) == 10

    notification = NotificationIntent.query.filter_by(type='storage_request_rejected').one()
    assert notification.payload['reason'] == 'No space until spring'
    assert notification.processed is False

    assert service.approve_request(admin, request['id'], [u1.id]).error_kind == 'InvalidState'
