"""
End-to-end yard scenarios: approve, book, receive, ship.
"""
from pipeyard.data.inventory_item import InventoryItem
from pipeyard.data.statuses import LoadDirection
from pipeyard.data.storage_request import UnitAllocation


def test_scenario_a_even_split_with_spill(service, admin, customer, make_units, occupied_of):
    u1, u2 = make_units((100, 0), (50, 0))
    request = service.submit_request(customer, 'REQ-A', 'Acme', 120).snapshot

    result = service.approve_request(admin, request['id'], [u1.id, u2.id])
    assert result.success, result.error_message
    assert occupied_of(u1.id) == 70, "U2 fills up and the spill lands on U1"
    assert occupied_of(u2.id) == 50


def test_scenario_b_insufficient_capacity_names_each_unit(service, admin, customer, make_units, occupied_of):
    u1, u2 = make_units((100, 0), (50, 0))
    request = service.submit_request(customer, 'REQ-B', 'Acme', 200).snapshot

    result = service.approve_request(admin, request['id'], [u1.id, u2.id])
    assert result.error_kind == 'InsufficientCapacity'
    assert 'required 200, available 150' in result.error_message
    assert 'U1 (100 available)' in result.error_message
    assert 'U2 (50 available)' in result.error_message
    assert result.error_context['required'] == 200 and result.error_context['available'] == 150

    assert occupied_of(u1.id) == 0 and occupied_of(u2.id) == 0
    assert service.get_request(request['id']).snapshot['status'] == 'Pending'


def test_scenario_c_next_load_blocked_by_new_load(service, admin, make_units, approved_request):
    u1, = make_units((100, 0))
    request = approved_request([u1], 100)
    first = service.book_load(admin, request['id'], 'Inbound').snapshot

    check = service.can_book_next_load(request['id'], 'Inbound').snapshot
    assert check == {
        'allowed': False,
        'blocking_load': {'id': first['id'], 'sequence_number': 1, 'status': 'New'},
    }


def test_scenarios_d_and_e_short_delivery_then_full_pickup(
        service, admin, customer, make_units, approved_request, ready_load, occupied_of):
    u1, = make_units((100, 0))
    request = approved_request([u1], 100)
    assert occupied_of(u1.id) == 100

    # D: 90 joints arrive against a plan of 100, without a manifest
    inbound = ready_load(request['id'], planned_quantity=100)
    received = service.complete_inbound(admin, inbound['id'], 90)
    assert received.success, received.error_message

    items = received.snapshot['received_items']
    assert len(items) == 1
    assert items[0]['quantity'] == 90 and items[0]['status'] == 'InStorage'
    assert occupied_of(u1.id) == 90, "The 10 joints that never came are released"
    assert UnitAllocation.query.one().reserved_quantity == 0

    # E: every stored joint leaves on one outbound load
    outbound = ready_load(request['id'], direction=LoadDirection.OUTBOUND)
    assert service.request_pickup(customer, outbound['id'], [items[0]['id']]).success
    shipped = service.complete_outbound(admin, outbound['id'], [items[0]['id']])
    assert shipped.success, shipped.error_message

    assert occupied_of(u1.id) == 0
    assert shipped.snapshot['request_status'] == 'Completed'
    assert {i.status.value for i in InventoryItem.query} == {'Delivered'}
    assert service.get_request(request['id']).snapshot['status'] == 'Completed'
