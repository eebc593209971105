"""
Tests for load booking, sequencing, approval, dispatch and cancellation.
"""
from pipeyard.data.audit_record import AuditRecord
from pipeyard.data.notification_intent import NotificationIntent
from pipeyard.data.statuses import LoadDirection


def test_booking_requires_approved_request(service, admin, customer):
    submitted = service.submit_request(customer, 'REQ-1', 'Acme', 10)
    result = service.book_load(customer, submitted.snapshot['id'], LoadDirection.INBOUND)
    assert result.error_kind == 'InvalidState'

    assert service.book_load(admin, 999, 'Inbound').error_kind == 'NotFound'


def test_sequence_numbers_are_per_direction(service, admin, make_units, approved_request):
    u1, = make_units((100, 0))
    request = approved_request([u1], 100)

    first = service.book_load(admin, request['id'], 'Inbound', planned_quantity=50)
    assert first.success, first.error_message
    assert first.snapshot['sequence_number'] == 1
    assert first.snapshot['status'] == 'New'
    assert first.snapshot['label'] == 'Inbound load #1'

    outbound = service.book_load(admin, request['id'], 'Outbound')
    assert outbound.snapshot['sequence_number'] == 1, "Each direction numbers its loads independently"

    assert service.approve_load(admin, first.snapshot['id']).success
    second = service.book_load(admin, request['id'], 'Inbound', planned_quantity=50)
    assert second.snapshot['sequence_number'] == 2


def test_cannot_book_next_load_while_previous_is_new(service, admin, make_units, approved_request):
    u1, = make_units((100, 0))
    request = approved_request([u1], 100)
    first = service.book_load(admin, request['id'], 'Inbound')

    check = service.can_book_next_load(request['id'], 'Inbound')
    assert check.success
    assert check.snapshot['allowed'] is False
    assert check.snapshot['blocking_load']['id'] == first.snapshot['id']
    assert check.snapshot['blocking_load']['status'] == 'New'

    blocked = service.book_load(admin, request['id'], 'Inbound')
    assert blocked.error_kind == 'SequenceViolation'
    assert blocked.error_context['blocking_sequence_number'] == 1

    assert service.can_book_next_load(request['id'], 'Outbound').snapshot['allowed'] is True


def test_cancelled_loads_never_block(service, admin, make_units, approved_request):
    u1, = make_units((100, 0))
    request = approved_request([u1], 100)
    first = service.book_load(admin, request['id'], 'Inbound')

    cancelled = service.cancel_load(admin, first.snapshot['id'], 'Truck broke down')
    assert cancelled.success, cancelled.error_message
    assert cancelled.snapshot['status'] == 'Cancelled'
    assert 'Truck broke down' in cancelled.snapshot['notes']

    assert service.can_book_next_load(request['id'], 'Inbound').snapshot['allowed'] is True
    assert service.book_load(admin, request['id'], 'Inbound').snapshot['sequence_number'] == 2


def test_load_cannot_be_approved_ahead_of_predecessor(service, admin, make_units, approved_request, db):
    from pipeyard.data.trucking_load import TruckingLoad
    u1, = make_units((100, 0))
    request = approved_request([u1], 100)
    first = service.book_load(admin, request['id'], 'Inbound')

    # Simulate a second load created before the first was resolved
    second = TruckingLoad(request_id=request['id'], direction=LoadDirection.INBOUND, sequence_number=2)
    db.session.add(second)
    db.session.commit()

    result = service.approve_load(admin, second.id)
    assert result.error_kind == 'SequenceViolation'
    assert result.error_context['blocking_load_id'] == first.snapshot['id']

    assert service.approve_load(admin, first.snapshot['id']).success
    assert service.approve_load(admin, second.id).success


def test_in_transit_only_from_approved(service, admin, make_units, approved_request):
    u1, = make_units((100, 0))
    request = approved_request([u1], 100)
    load = service.book_load(admin, request['id'], 'Inbound').snapshot

    early = service.mark_in_transit(admin, load['id'])
    assert early.error_kind == 'InvalidState', "New → InTransit must be rejected"

    assert service.approve_load(admin, load['id']).success
    moving = service.mark_in_transit(admin, load['id'])
    assert moving.success
    assert moving.snapshot['status'] == 'InTransit'

    assert service.cancel_load(admin, load['id']).error_kind == 'InvalidState'


def test_load_effects(service, admin, make_units, approved_request):
    u1, = make_units((100, 0))
    request = approved_request([u1], 100)
    load = service.book_load(admin, request['id'], 'Inbound').snapshot
    service.approve_load(admin, load['id'])
    service.mark_in_transit(admin, load['id'])

    for action in ('BOOK_LOAD', 'APPROVE_LOAD', 'MARK_LOAD_IN_TRANSIT'):
        assert AuditRecord.query.filter_by(action=action, entity_id=load['id']).count() == 1, action

    types = [n.type for n in NotificationIntent.query.order_by(NotificationIntent.id)]
    assert types[-2:] == ['load_booked', 'load_approved'], "Marking in transit sends no notification"


def test_customer_may_only_book_own_requests(service, customer, outsider, make_units, approved_request):
    u1, = make_units((100, 0))
    request = approved_request([u1], 100)

    assert service.book_load(customer, request['id'], 'Inbound').success
    denied = service.book_load(outsider, request['id'], 'Outbound')
    assert denied.error_kind == 'Unauthorized'

    assert service.approve_load(customer, 1).error_kind == 'Unauthorized'


def test_bad_booking_input(service, admin, make_units, approved_request):
    from datetime import datetime, timedelta
    u1, = make_units((100, 0))
    request = approved_request([u1], 100)

    assert service.book_load(admin, request['id'], 'Sideways').error_kind == 'InvalidAssignment'
    assert service.book_load(admin, request['id'], 'Inbound', planned_quantity=-1).error_kind == 'InvalidAssignment'

    start = datetime(2026, 3, 2, 9, 0)
    backwards = service.book_load(admin, request['id'], 'Inbound', scheduled_start=start,
                                  scheduled_end=start - timedelta(hours=1))
    assert backwards.error_kind == 'InvalidAssignment'


def test_aware_schedule_times_are_stored_as_utc(service, admin, make_units, approved_request):
    from datetime import datetime, timedelta, timezone
    u1, = make_units((100, 0))
    request = approved_request([u1], 100)

    # 10:00 at UTC+2 is 08:00 UTC, an hour before the naive UTC end
    start = datetime(2026, 3, 2, 10, 0, tzinfo=timezone(timedelta(hours=2)))
    booked = service.book_load(admin, request['id'], 'Inbound', scheduled_start=start,
                               scheduled_end=datetime(2026, 3, 2, 9, 0))
    assert booked.success, booked.error_message
    assert booked.snapshot['scheduled_start'] == '2026-03-02T08:00:00'
    assert booked.snapshot['scheduled_end'] == '2026-03-02T09:00:00'

    service.cancel_load(admin, booked.snapshot['id'])
    backwards = service.book_load(admin, request['id'], 'Inbound', scheduled_start=start,
                                  scheduled_end=datetime(2026, 3, 2, 7, 30))
    assert backwards.error_kind == 'InvalidAssignment'

    garbage = service.book_load(admin, request['id'], 'Inbound', scheduled_start='tomorrow')
    assert garbage.error_kind == 'InvalidAssignment'
