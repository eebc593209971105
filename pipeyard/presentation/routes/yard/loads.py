from flask_login import login_required
from pipeyard import limiter
from pipeyard.presentation.routes.yard import yard_bp
from pipeyard.presentation.routes.yard.responses import current_operator, json_body, respond
from pipeyard.services.yard.workflow_service import WorkflowService


@yard_bp.get('/loads/<int:load_id>')
@login_required
def get_load(load_id):
    return respond(WorkflowService.get_load(load_id))


@yard_bp.post('/loads/<int:load_id>/approve')
@login_required
@limiter.limit("60 per minute")
def approve_load(load_id):
    return respond(WorkflowService().approve_load(current_operator(), load_id))


@yard_bp.post('/loads/<int:load_id>/in-transit')
@login_required
@limiter.limit("60 per minute")
def mark_in_transit(load_id):
    return respond(WorkflowService().mark_in_transit(current_operator(), load_id))


@yard_bp.post('/loads/<int:load_id>/cancel')
@login_required
@limiter.limit("60 per minute")
def cancel_load(load_id):
    body = json_body()
    return respond(WorkflowService().cancel_load(current_operator(), load_id, body.get('reason')))


@yard_bp.post('/loads/<int:load_id>/pickup')
@login_required
@limiter.limit("60 per minute")
def request_pickup(load_id):
    body = json_body()
    return respond(WorkflowService().request_pickup(current_operator(), load_id, body.get('item_ids') or []))


@yard_bp.post('/loads/<int:load_id>/complete-inbound')
@login_required
@limiter.limit("60 per minute")
def complete_inbound(load_id):
    body = json_body()
    result = WorkflowService().complete_inbound(
        current_operator(),
        load_id,
        body.get('actual_totals') or {},
        manifest_lines=body.get('manifest_lines'),
        notes=body.get('notes'),
    )
    return respond(result)


@yard_bp.post('/loads/<int:load_id>/complete-outbound')
@login_required
@limiter.limit("60 per minute")
def complete_outbound(load_id):
    body = json_body()
    result = WorkflowService().complete_outbound(
        current_operator(),
        load_id,
        body.get('item_ids') or [],
        notes=body.get('notes'),
    )
    return respond(result)
