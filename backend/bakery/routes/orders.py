from __future__ import annotations
from flask import Blueprint, request
from bakery.constants.permissions import ORDERS
from bakery.decorators.audit import audit_log
from bakery.decorators.auth import require_permissions
from bakery.services.lifecycle import OrderService
from bakery.utils.errors import BadRequest

orders_bp = Blueprint('orders', __name__)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest('JSON object body required')
    return data


@orders_bp.get('')
@require_permissions(ORDERS.VIEW)
def list_orders():
    return OrderService().list(status=request.args.get('status'))


@orders_bp.get('/<int:order_id>')
@require_permissions(ORDERS.VIEW)
def get_order(order_id: int):
    return OrderService().get(order_id)


@orders_bp.post('')
@require_permissions(ORDERS.CREATE)
@audit_log('ORDER.CREATE', entity='Order', entity_id_key='id', meta_keys=['final_total', 'item_count'])
def create_order():
    return OrderService().create(_json_body()), 201


@orders_bp.put('/<int:order_id>')
@require_permissions(ORDERS.EDIT)
@audit_log('ORDER.UPDATE', entity='Order', entity_id_key='id', meta_keys=['final_total', 'item_count'])
def update_order(order_id: int):
    return OrderService().update(order_id, _json_body())


@orders_bp.put('/<int:order_id>/status')
@require_permissions(ORDERS.EDIT)
@audit_log('ORDER.STATUS', entity='Order', entity_id_key='id',
           meta_builder=lambda data, rv, args, kwargs: {'status': (data.get('status') or {}).get('label')})
def update_order_status(order_id: int):
    data = _json_body()
    if 'status_id' not in data:
        raise BadRequest('status_id required')
    return OrderService().transition(order_id, data['status_id'])


@orders_bp.delete('/<int:order_id>')
@require_permissions(ORDERS.DELETE)
@audit_log('ORDER.DELETE', entity='Order', entity_id_arg='order_id')
def delete_order(order_id: int):
    return OrderService().delete(order_id)
