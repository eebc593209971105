from flask import request
from flask_login import login_required
from pipeyard import limiter
from pipeyard.buisness.yard.errors import InvalidAssignmentError
from pipeyard.presentation.routes.yard import yard_bp
from pipeyard.presentation.routes.yard.responses import (
    current_operator,
    invalid_input,
    json_body,
    parse_datetime,
    respond,
)
from pipeyard.services.yard.workflow_service import WorkflowService


@yard_bp.post('/requests')
@login_required
@limiter.limit("30 per minute")
def submit_request():
    body = json_body()
    result = WorkflowService().submit_request(
        current_operator(),
        reference_code=body.get('reference_code'),
        owner=body.get('owner'),
        requested_quantity=body.get('requested_quantity'),
        contact_email=body.get('contact_email'),
        item_description=body.get('item_description'),
    )
    return respond(result, success_status=201)


@yard_bp.get('/requests/<int:request_id>')
@login_required
def get_request(request_id):
    return respond(WorkflowService.get_request(request_id))


@yard_bp.post('/requests/<int:request_id>/approve')
@login_required
@limiter.limit("30 per minute")
def approve_request(request_id):
    body = json_body()
    result = WorkflowService().approve_request(
        current_operator(),
        request_id,
        body.get('unit_assignments') or [],
        notes=body.get('notes'),
    )
    return respond(result)


@yard_bp.post('/requests/<int:request_id>/reject')
@login_required
@limiter.limit("30 per minute")
def reject_request(request_id):
    body = json_body()
    return respond(WorkflowService().reject_request(current_operator(), request_id, body.get('reason')))


@yard_bp.get('/requests/<int:request_id>/loads/next')
@login_required
def can_book_next_load(request_id):
    direction = request.args.get('direction', 'Inbound')
    return respond(WorkflowService().can_book_next_load(request_id, direction))


@yard_bp.post('/requests/<int:request_id>/loads')
@login_required
@limiter.limit("30 per minute")
def book_load(request_id):
    body = json_body()
    try:
        scheduled_start = parse_datetime(body.get('scheduled_start'), 'scheduled_start')
        scheduled_end = parse_datetime(body.get('scheduled_end'), 'scheduled_end')
    except InvalidAssignmentError as e:
        return invalid_input(e)

    result = WorkflowService().book_load(
        current_operator(),
        request_id,
        body.get('direction'),
        planned_quantity=body.get('planned_quantity'),
        planned_length_ft=body.get('planned_length_ft'),
        planned_weight_lbs=body.get('planned_weight_lbs'),
        scheduled_start=scheduled_start,
        scheduled_end=scheduled_end,
        notes=body.get('notes'),
    )
    return respond(result, success_status=201)
