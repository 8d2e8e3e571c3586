"""Process-wide, time-bounded cache of resolved permission sets.

Entries expire passively (checked on read) and are swept actively every
``sweep_interval`` seconds, piggybacked on regular cache access. Values are
stored as frozensets and handed out as fresh sets so callers can never mutate
shared state.

The instance is built by create_app() and injected into the authorization
gate; tests construct their own with a fake clock.
"""
from __future__ import annotations
import threading
import time
from typing import Callable, Dict, Iterable, Optional, Set, Tuple

from flask import current_app, has_app_context

DEFAULT_TTL = 120
MIN_SWEEP_INTERVAL = 30
KEY_PREFIX = 'user-permissions:'
EXTENSION_KEY = 'permission_cache'


def ttl_from_env(raw) -> int:
    """Parse the configured TTL; anything not a positive integer falls back to the default."""
    try:
        ttl = int(str(raw).strip())
    except (TypeError, ValueError):
        return DEFAULT_TTL
    return ttl if ttl > 0 else DEFAULT_TTL


def _log(level: str, msg: str, *args):
    if has_app_context():
        getattr(current_app.logger, level)(msg, *args)


class PermissionCache:
    def __init__(self, ttl: int = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl_from_env(ttl)
        self.sweep_interval = max(MIN_SWEEP_INTERVAL, self.ttl // 2)
        self._clock = clock
        self._entries: Dict[str, Tuple[float, frozenset]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    @staticmethod
    def key(user_id) -> str:
        return f'{KEY_PREFIX}{user_id}'

    def get(self, user_id) -> Optional[Set[str]]:
        """Return a copy of the cached set, or None on miss/expiry."""
        if not user_id:
            return None
        key = self.key(user_id)
        with self._lock:
            now = self._clock()
            self._maybe_sweep(now)
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, slugs = entry
            if expires_at <= now:
                del self._entries[key]
                return None
            return set(slugs)

    def put(self, user_id, slugs: Iterable[str]):
        if not user_id or slugs is None:
            return
        with self._lock:
            now = self._clock()
            self._maybe_sweep(now)
            self._entries[self.key(user_id)] = (now + self.ttl, frozenset(slugs))

    def invalidate(self, user_id) -> bool:
        if not user_id:
            return False
        with self._lock:
            removed = self._entries.pop(self.key(user_id), None) is not None
        _log('info', 'permission cache invalidated for user %s', user_id)
        return removed

    def invalidate_many(self, user_ids: Iterable) -> int:
        return sum(1 for uid in user_ids if self.invalidate(uid))

    def flush_all(self):
        with self._lock:
            self._entries.clear()
        _log('info', 'permission cache flushed')

    def sweep(self) -> int:
        """Drop every expired entry; returns the number removed."""
        with self._lock:
            return self._sweep(self._clock())

    def _maybe_sweep(self, now: float):
        if now - self._last_sweep >= self.sweep_interval:
            self._sweep(now)

    def _sweep(self, now: float) -> int:
        expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
        for k in expired:
            del self._entries[k]
        self._last_sweep = now
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def current_permission_cache() -> PermissionCache:
    """The cache instance registered on the running app by create_app()."""
    return current_app.extensions[EXTENSION_KEY]


__all__ = ['PermissionCache', 'ttl_from_env', 'current_permission_cache', 'DEFAULT_TTL']
