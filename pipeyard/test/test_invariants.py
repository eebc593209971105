"""
Counter consistency over a full request lifecycle.
"""
from pipeyard.data.inventory_item import InventoryItem
from pipeyard.data.statuses import LoadDirection
from pipeyard.data.storage_unit import StorageUnit
from pipeyard.data.trucking_load import TruckingLoad
from pipeyard.services.yard.capacity_report_service import CapacityReportService


def _assert_consistent(step):
    report = CapacityReportService.reconcile()
    out_of_sync = [row for row in report if not row['in_sync']]
    assert not out_of_sync, f"After {step}: {out_of_sync}"
    for unit in StorageUnit.query:
        assert 0 <= unit.occupied <= unit.capacity, f"After {step}: {unit.name} at {unit.occupied}/{unit.capacity}"


def _item_ids(request_id):
    return [item.id for item in InventoryItem.query.filter_by(request_id=request_id).order_by(InventoryItem.id)]


def test_counters_match_goods_and_reservations_throughout(
        service, admin, customer, make_units, approved_request, ready_load):
    u1, u2, u3 = make_units((100, 0), (50, 0), (80, 0))
    first = approved_request([u1, u2], 120)
    _assert_consistent('approval')

    second = approved_request([u3], 60, reference='REQ-2', assignments=[(u3.id, 60)])
    _assert_consistent('second approval')

    load_1 = ready_load(first['id'], planned_quantity=70)
    ready_load(first['id'], planned_quantity=50)
    result = service.complete_inbound(admin, load_1['id'], 65, [
        {'serial_number': 'SN-1', 'quantity': 45},
        {'heat_number': 'HT-2', 'quantity': 20},
    ])
    assert result.success, result.error_message
    _assert_consistent('short first inbound load')

    load_2 = TruckingLoad.query.filter_by(
        request_id=first['id'], direction=LoadDirection.INBOUND, sequence_number=2,
    ).one()
    result = service.complete_inbound(admin, load_2.id, 58)
    assert result.success, result.error_message
    _assert_consistent('over-receipt on last inbound load')

    inbound = ready_load(second['id'])
    result = service.complete_inbound(admin, inbound['id'], 60)
    assert result.success, result.error_message
    _assert_consistent('second request received')

    item_ids = _item_ids(first['id'])
    outbound = ready_load(first['id'], direction=LoadDirection.OUTBOUND)
    assert service.request_pickup(customer, outbound['id'], item_ids).success
    _assert_consistent('pickup staging')

    result = service.complete_outbound(admin, outbound['id'], item_ids[:1])
    assert result.success, result.error_message
    _assert_consistent('partial outbound load')

    outbound_2 = ready_load(first['id'], direction=LoadDirection.OUTBOUND)
    result = service.complete_outbound(admin, outbound_2['id'], item_ids[1:])
    assert result.success, result.error_message
    assert result.snapshot['request_status'] == 'Completed'
    _assert_consistent('request completed')

    assert u1.occupied == 0 and u2.occupied == 0, "Both racks of the first request are empty again"

    adjusted = service.manual_adjustment(admin, u3.id, 60, 'Recount matches the system')
    assert adjusted.success, adjusted.error_message
    _assert_consistent('manual adjustment')
