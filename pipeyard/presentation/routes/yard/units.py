from flask import jsonify, request
from flask_login import login_required
from pipeyard import limiter
from pipeyard.presentation.routes.yard import yard_bp
from pipeyard.presentation.routes.yard.responses import current_operator, json_body, respond
from pipeyard.services.yard.capacity_report_service import CapacityReportService
from pipeyard.services.yard.workflow_service import WorkflowService


@yard_bp.get('/units')
@login_required
def list_units():
    return jsonify({'units': CapacityReportService.list_units(area=request.args.get('area'))})


@yard_bp.get('/units/reconcile')
@login_required
def reconcile_units():
    report = CapacityReportService.reconcile()
    return jsonify({
        'in_sync': all(row['in_sync'] for row in report),
        'units': report,
    })


@yard_bp.post('/units/<int:unit_id>/adjust')
@login_required
@limiter.limit("10 per minute")
def adjust_unit(unit_id):
    body = json_body()
    result = WorkflowService().manual_adjustment(
        current_operator(),
        unit_id,
        body.get('occupied'),
        body.get('reason'),
    )
    return respond(result)
