"""Typed application errors and database error classification.

Every business-rule failure is raised as one of the AppError subclasses below
at the point of detection. They subclass werkzeug's HTTPException so the
unified handler in create_app() renders them the same way as abort() errors,
plus a stable machine-readable ``error_code``.

Usage:
    from bakery.utils.errors import NotFound, from_db_error
    raise NotFound('Order not found')

    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise from_db_error(exc, 'Could not save the group') from exc
"""
from __future__ import annotations
import re
from typing import Any, Dict, Optional

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from werkzeug.exceptions import HTTPException


class AppError(HTTPException):
    code = 500
    error_code = 'INTERNAL_ERROR'
    default_message = 'Internal server error'

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None, error_code: Optional[str] = None):
        super().__init__(description=message or self.default_message)
        self.details = details
        if error_code:
            self.error_code = error_code

    @property
    def message(self) -> str:
        return self.description


class BadRequest(AppError):
    code = 400
    error_code = 'BAD_REQUEST'
    default_message = 'Invalid request'


class Unauthorized(AppError):
    code = 401
    error_code = 'AUTH_REQUIRED'
    default_message = 'Authentication required'


class Forbidden(AppError):
    code = 403
    error_code = 'FORBIDDEN'
    default_message = 'Operation not allowed'


class NotFound(AppError):
    code = 404
    error_code = 'ROW_NOT_FOUND'
    default_message = 'Resource not found'


class Conflict(AppError):
    code = 409
    error_code = 'CONFLICT'
    default_message = 'Conflict'


class Internal(AppError):
    code = 500
    error_code = 'INTERNAL_ERROR'
    default_message = 'Internal server error'


# SQLSTATE -> (error class, machine code)
_SQLSTATE_KINDS = {
    '23503': (Conflict, 'FOREIGN_KEY_CONFLICT'),
    '23505': (Conflict, 'UNIQUE_CONSTRAINT'),
    '23502': (BadRequest, 'NOT_NULL'),
    '23514': (BadRequest, 'CHECK_VIOLATION'),
    '22P02': (BadRequest, 'INVALID_INPUT'),
    '22001': (BadRequest, 'INVALID_INPUT'),
    '40001': (Conflict, 'RETRY'),
}

# SQLite reports constraint failures only through the message text
_SQLITE_PATTERNS = (
    ('UNIQUE constraint failed', '23505'),
    ('NOT NULL constraint failed', '23502'),
    ('FOREIGN KEY constraint failed', '23503'),
    ('CHECK constraint failed', '23514'),
)


def _sqlstate_of(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, 'orig', None)
    for attr in ('sqlstate', 'pgcode'):
        value = getattr(orig, attr, None)
        if value:
            return str(value).upper()
    text = str(orig) if orig is not None else str(exc)
    for needle, state in _SQLITE_PATTERNS:
        if needle in text:
            return state
    return ''


def _column_of(exc: SQLAlchemyError) -> Optional[str]:
    """Best effort extraction of the offending column from the driver message."""
    orig = getattr(exc, 'orig', None)
    diag = getattr(orig, 'diag', None)
    text = ' '.join(filter(None, [
        getattr(diag, 'message_detail', None),
        str(orig) if orig is not None else None,
    ]))
    m = re.search(r'Key \(([^)]+)\)=', text, re.IGNORECASE)
    if m:
        return m.group(1)
    m = re.search(r'column "([^"]+)"', text, re.IGNORECASE)
    if m:
        return m.group(1)
    # SQLite: "UNIQUE constraint failed: groups.name"
    m = re.search(r'constraint failed: \w+\.(\w+)', text)
    if m:
        return m.group(1)
    return None


def _default_message(sqlstate: str, column: Optional[str]) -> str:
    if sqlstate == '23503':
        return 'The record is referenced by other data.'
    if sqlstate == '23505':
        return f'A record with that {column} already exists.' if column else 'A record with that data already exists.'
    if sqlstate == '23502':
        return f'Missing required field: {column}.' if column else 'A required field is missing.'
    if sqlstate == '23514':
        return 'The data does not satisfy a validation rule.'
    if sqlstate in ('22P02', '22001'):
        return 'Some value has an invalid format.'
    if sqlstate == '40001':
        return 'Concurrent update conflict. Try again.'
    return 'An error occurred while processing the operation.'


def from_db_error(exc: SQLAlchemyError, friendly: Optional[str] = None) -> AppError:
    """Classify a store error into the application taxonomy.

    ``friendly`` overrides the generated user-facing message.
    """
    sqlstate = _sqlstate_of(exc) if isinstance(exc, DBAPIError) else ''
    orig = getattr(exc, 'orig', None)
    details = {'sqlstate': sqlstate or 'UNKNOWN', 'raw': str(orig if orig is not None else exc)}
    kind = _SQLSTATE_KINDS.get(sqlstate)
    if kind:
        cls, error_code = kind
        message = friendly or _default_message(sqlstate, _column_of(exc))
        return cls(message, details=details, error_code=error_code)
    return Internal(friendly or _default_message('', None), details=details)


def assert_found(value: Any, message: str = 'Resource not found'):
    if value is None or (isinstance(value, (list, tuple, set, dict)) and not value):
        raise NotFound(message)
    return value


__all__ = [
    'AppError', 'BadRequest', 'Unauthorized', 'Forbidden', 'NotFound', 'Conflict', 'Internal',
    'from_db_error', 'assert_found',
]
