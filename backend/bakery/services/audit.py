from __future__ import annotations
from typing import Any, Dict, Optional
from flask import current_app
from flask_jwt_extended import get_jwt_identity
from flask_jwt_extended.exceptions import JWTExtendedException
from bakery import get_db
from bakery.models.audit import AuditLog
from bakery.utils.filters import apply_filters
from bakery.utils.listing import iso, paginate
from bakery.utils.validation import parse_positive_int


def _current_actor() -> int:
    try:
        ident = get_jwt_identity()
    except (RuntimeError, JWTExtendedException):
        # outside a verified request (seed scripts, unit tests)
        return 0
    try:
        return int(ident) if ident is not None else 0
    except (TypeError, ValueError):
        current_app.logger.warning('non-numeric JWT identity %r recorded as actor 0', ident)
        return 0


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[Any] = None, meta: Optional[Dict[str, Any]] = None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. ORDER.CREATE, EVENT.STATUS, GROUP.PERM.ADD
      entity: optional entity name (Order, Event, Group, Permission, User)
      entity_id: optional primary key, stored as string
      meta: additional JSON-safe dictionary (shallow copied)
    """
    log = AuditLog(
        actor_user_id=_current_actor(),
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=dict(meta or {}),
    )
    get_db().add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log


def serialize_audit(log: AuditLog):
    return {
        'id': log.id,
        'actor_user_id': log.actor_user_id,
        'action': log.action,
        'entity': log.entity,
        'entity_id': log.entity_id,
        'meta': log.meta or {},
        'created_at': iso(log.created_at),
    }


AUDIT_FILTERS = {
    'action': {'op': lambda q, v: q.filter(AuditLog.action == v), 'coerce': lambda v: str(v).strip().upper()},
    'entity': {'op': lambda q, v: q.filter(AuditLog.entity == v), 'coerce': lambda v: str(v).strip()},
    'actor_user_id': {'op': lambda q, v: q.filter(AuditLog.actor_user_id == v), 'coerce': lambda v: parse_positive_int(v, 'actor_user_id')},
}


def list_audit_logs(params):
    q = get_db().query(AuditLog)
    q = apply_filters(q, AUDIT_FILTERS, params)
    q = q.order_by(AuditLog.id.desc())
    return paginate(q, serialize_audit)
