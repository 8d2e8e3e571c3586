from __future__ import annotations
from flask import Blueprint, request
from bakery.constants.permissions import EVENTS
from bakery.decorators.audit import audit_log
from bakery.decorators.auth import require_permissions
from bakery.services.lifecycle import EventService
from bakery.utils.errors import BadRequest

events_bp = Blueprint('events', __name__)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest('JSON object body required')
    return data


@events_bp.get('')
@require_permissions(EVENTS.VIEW)
def list_events():
    return EventService().list(status=request.args.get('status'))


@events_bp.get('/<int:event_id>')
@require_permissions(EVENTS.VIEW)
def get_event(event_id: int):
    return EventService().get(event_id)


@events_bp.post('')
@require_permissions(EVENTS.CREATE)
@audit_log('EVENT.CREATE', entity='Event', entity_id_key='id', meta_keys=['final_total', 'item_count'])
def create_event():
    return EventService().create(_json_body()), 201


@events_bp.put('/<int:event_id>')
@require_permissions(EVENTS.EDIT)
@audit_log('EVENT.UPDATE', entity='Event', entity_id_key='id', meta_keys=['final_total', 'item_count'])
def update_event(event_id: int):
    return EventService().update(event_id, _json_body())


@events_bp.put('/<int:event_id>/status')
@require_permissions(EVENTS.EDIT)
@audit_log('EVENT.STATUS', entity='Event', entity_id_key='id',
           meta_builder=lambda data, rv, args, kwargs: {'status': (data.get('status') or {}).get('label')})
def update_event_status(event_id: int):
    data = _json_body()
    if 'status_id' not in data:
        raise BadRequest('status_id required')
    return EventService().transition(event_id, data['status_id'])


@events_bp.delete('/<int:event_id>')
@require_permissions(EVENTS.DELETE)
@audit_log('EVENT.DELETE', entity='Event', entity_id_arg='event_id')
def delete_event(event_id: int):
    return EventService().delete(event_id)
