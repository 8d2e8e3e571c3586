"""Audit logging decorator to reduce repetitive add_audit() calls in route handlers.

Usage examples:

@audit_log('ORDER.CREATE', entity='Order', entity_id_key='id', meta_keys=['final_total'])
def create_order():
    ... return service.create(payload), 201

@audit_log('GROUP.PERM.ADD', entity='Group', entity_id_arg='group_id',
           meta_builder=lambda data, rv, args, kwargs: {'permission_id': data.get('permission_id')})
def add_group_permission(group_id): ...

Parameters:
  action: required audit action code (e.g. ORDER.STATUS)
  entity: optional entity label (Order, Event, Group, Permission, User)
  entity_id_key: key in the returned JSON object whose value becomes entity_id.
  entity_id_arg: name of the path parameter to use for entity_id (fallback if entity_id_key absent).
  meta_keys: list of keys to project from returned JSON into meta dict (shallow copy).
  meta_builder: callable returning a meta dict; receives (data, original_return_value, args, kwargs). If provided it overrides meta_keys.

The entry is written only when the view returned normally (errors propagate
before reaching it). Audit bookkeeping failures are logged and never change
the response.
"""
from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Iterable, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from bakery.services.audit import add_audit
from bakery import get_db


def _extract_payload(rv: Any):
    """Return the JSON-able dict of a view return value (dict, (dict, status), ...)."""
    if isinstance(rv, tuple) and rv:
        return rv[0]
    return rv


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            rv = fn(*args, **kwargs)
            data = _extract_payload(rv)
            if not isinstance(data, dict):
                data = {}
            entity_id = None
            if entity_id_key and entity_id_key in data:
                entity_id = data.get(entity_id_key)
            elif entity_id_arg and entity_id_arg in kwargs:
                entity_id = kwargs.get(entity_id_arg)
            meta = None
            try:
                if meta_builder:
                    meta = meta_builder(data, rv, args, kwargs)
                elif meta_keys:
                    meta = {k: data.get(k) for k in meta_keys if k in data}
            except (KeyError, TypeError, ValueError, AttributeError):
                current_app.logger.exception('audit meta builder failed for %s', action)
            session = get_db()
            try:
                add_audit(action, entity, entity_id, meta)
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                current_app.logger.exception('could not record audit entry %s', action)
            return rv
        return wrapper
    return outer
