"""
Tests for the capacity ledger, capacity policy and manual unit adjustments.
"""
import pytest
from pipeyard import db as _db
from pipeyard.buisness.yard.capacity_ledger import CapacityLedger
from pipeyard.buisness.yard.errors import (
    CapacityInvariantError,
    InsufficientCapacityError,
    InvalidAssignmentError,
    OverCapacityError,
)
from pipeyard.buisness.yard.operator import SYSTEM_OPERATOR
from pipeyard.buisness.yard.policies.capacity_policy import CapacityPolicy
from pipeyard.buisness.yard.transaction import EffectBundle
from pipeyard.data.audit_record import AuditRecord
from pipeyard.data.notification_intent import NotificationIntent


def test_lock_units_returns_units_in_id_order(make_units):
    u1, u2, u3 = make_units((10, 0), (10, 0), (10, 0))
    ledger = CapacityLedger(EffectBundle('TEST', SYSTEM_OPERATOR))

    locked = ledger.lock_units([u3.id, u1.id, u2.id])
    assert list(locked) == [u1.id, u2.id, u3.id], "Units should be locked in ascending id order"
    assert [u.id for u in CapacityLedger.ordered(locked, [u3.id, u1.id])] == [u3.id, u1.id]


def test_lock_units_rejects_unknown_ids(make_units):
    u1, = make_units((10, 0))
    ledger = CapacityLedger(EffectBundle('TEST', SYSTEM_OPERATOR))

    with pytest.raises(InvalidAssignmentError) as exc_info:
        ledger.lock_units([u1.id, 999])
    assert exc_info.value.context['missing_unit_ids'] == [999]


def test_counter_changes_are_bounded_and_tracked(make_units):
    u1, = make_units((10, 4))
    effects = EffectBundle('TEST', SYSTEM_OPERATOR)
    ledger = CapacityLedger(effects)

    assert ledger.allocate(u1, 6) == 10
    assert u1.id in effects.touched_units, "Mutated units should be registered for the pre-commit check"

    with pytest.raises(CapacityInvariantError):
        ledger.allocate(u1, 1)
    assert u1.occupied == 10, "A rejected change must leave the counter untouched"

    assert ledger.release(u1, 10) == 0
    with pytest.raises(CapacityInvariantError):
        ledger.release(u1, 1)
    _db.session.rollback()


def test_insufficient_capacity_message_lists_every_unit(make_units):
    u1, u2 = make_units((100, 0), (50, 0))
    u1.name, u2.name = 'A-1', 'A-2'

    with pytest.raises(InsufficientCapacityError) as exc_info:
        CapacityPolicy.check_sufficient([u1, u2], 200)
    message = exc_info.value.message
    assert 'required 200, available 150' in message
    assert 'A-1 (100 available)' in message and 'A-2 (50 available)' in message
    _db.session.rollback()


def test_over_capacity_is_an_insufficient_capacity_kind(make_units):
    u1, = make_units((100, 95))
    with pytest.raises(OverCapacityError) as exc_info:
        CapacityPolicy.check_over_capacity([u1], excess=10, reserved=90)
    assert isinstance(exc_info.value, InsufficientCapacityError)
    assert exc_info.value.kind == 'OverCapacity'
    assert exc_info.value.context['available'] == 5


def test_manual_adjustment_sets_counter_and_audits(service, admin, make_units, occupied_of):
    u1, = make_units((100, 40))

    result = service.manual_adjustment(admin, u1.id, 25, 'Physical count after storm cleanup')
    assert result.success, result.error_message
    assert result.snapshot['occupied'] == 25
    assert result.snapshot['available'] == 75
    assert occupied_of(u1.id) == 25

    audit = AuditRecord.query.filter_by(action='MANUAL_UNIT_ADJUSTMENT').one()
    assert audit.details['old_occupied'] == 40 and audit.details['new_occupied'] == 25
    assert NotificationIntent.query.count() == 0, "Manual adjustments do not notify anyone"


@pytest.mark.parametrize('new_occupied, reason, kind', [
    (25, 'too short', 'InvalidAssignment'),
    (101, 'Physical count after storm cleanup', 'InvalidAssignment'),
    (-1, 'Physical count after storm cleanup', 'InvalidAssignment'),
])
def test_manual_adjustment_validation(service, admin, make_units, occupied_of, new_occupied, reason, kind):
    u1, = make_units((100, 40))

    result = service.manual_adjustment(admin, u1.id, new_occupied, reason)
    assert not result.success
    assert result.error_kind == kind
    assert occupied_of(u1.id) == 40
    assert AuditRecord.query.count() == 0


def test_manual_adjustment_requires_privilege_and_existing_unit(service, admin, customer, make_units):
    u1, = make_units((100, 40))
    result = service.manual_adjustment(customer, u1.id, 0, 'Physical count after storm cleanup')
    assert result.error_kind == 'Unauthorized'

    missing = service.manual_adjustment(admin, 999, 0, 'Physical count after storm cleanup')
    assert missing.error_kind == 'NotFound'
