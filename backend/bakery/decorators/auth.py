"""Request-level authorization gate.

    @orders_bp.get('/')
    @require_permissions(ORDERS.VIEW)
    def list_orders(): ...

The permission set of the authenticated user is loaded once per request
(request cache in ``g``), then from the shared PermissionCache, and only on a
miss from the resolver. The account's active flag is read on every request, so
a deactivated user's token stops working at once. Concurrent first requests for
the same user may each resolve and populate the cache; the last write wins.
"""
from __future__ import annotations
from functools import wraps
from typing import Callable, Set

from flask import current_app, g, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from bakery.services.permission_cache import EXTENSION_KEY as CACHE_EXTENSION_KEY, PermissionCache
from bakery.services.policy import is_active_user, resolve_effective_permissions
from bakery.utils.errors import Forbidden, Unauthorized
from bakery.utils.slugs import normalize_slugs

EXTENSION_KEY = 'authorization_gate'


class AuthorizationGate:
    def __init__(self, cache: PermissionCache, resolver: Callable = resolve_effective_permissions,
                 active_check: Callable = is_active_user):
        self.cache = cache
        self.resolver = resolver
        self.active_check = active_check

    def init_app(self, app):
        app.extensions[EXTENSION_KEY] = self
        app.extensions[CACHE_EXTENSION_KEY] = self.cache

    def load_for_request(self) -> Set[str]:
        cached = getattr(g, 'user_permissions', None)
        if isinstance(cached, (set, frozenset)):
            return cached
        identity = get_jwt_identity()
        try:
            user_id = int(identity)
        except (TypeError, ValueError):
            raise Unauthorized('Could not identify the user.')
        # deactivation must take effect on tokens already issued
        if not self.active_check(user_id):
            self.cache.invalidate(user_id)
            current_app.logger.warning('rejected token of inactive user %s', user_id)
            raise Unauthorized('User is inactive')
        slugs = self.cache.get(user_id)
        if slugs is None:
            current_app.logger.debug('permission cache miss for user %s', user_id)
            slugs = set(self.resolver(user_id))
            self.cache.put(user_id, slugs)
        g.user_permissions = slugs
        return slugs

    def check(self, normalized):
        """Verify the JWT and raise Forbidden unless every (already normalized) slug is granted."""
        verify_jwt_in_request()
        granted = self.load_for_request()
        missing = [slug for slug in normalized if slug not in granted]
        if missing:
            current_app.logger.warning('permission denied for user %s on %s', get_jwt_identity(), request.path)
            raise Forbidden('You do not have permission to perform this action.')

    def require(self, *required):
        normalized = normalize_slugs(*required)

        def outer(fn):
            if not normalized:
                return fn

            @wraps(fn)
            def wrapper(*args, **kwargs):
                self.check(normalized)
                return fn(*args, **kwargs)
            wrapper.required_permissions = tuple(normalized)
            return wrapper
        return outer


def current_gate() -> AuthorizationGate:
    return current_app.extensions[EXTENSION_KEY]


def require_permissions(*codes: str):
    """Decorator delegating to the gate registered on the running app."""
    normalized = normalize_slugs(*codes)

    def outer(fn):
        if not normalized:
            return fn

        @wraps(fn)
        def wrapper(*args, **kwargs):
            current_gate().check(normalized)
            return fn(*args, **kwargs)
        wrapper.required_permissions = tuple(normalized)
        return wrapper
    return outer
