"""Permission slug value object.

A slug identifies one permission as ``module:action``. Comparisons are always
made on the normalized (trimmed, lower-cased) form, so callers never need to
lower-case strings themselves.
"""
from __future__ import annotations
import re
from typing import Any, Iterable, List

from bakery.utils.errors import BadRequest

_WHITESPACE = re.compile(r'\s+')


class PermissionSlug(str):
    """str subclass holding the normalized form; equal/hash like that string."""

    __slots__ = ()

    def __new__(cls, raw: Any):
        return super().__new__(cls, str(raw).strip().lower())

    @classmethod
    def build(cls, module: Any, action: Any) -> 'PermissionSlug':
        safe_module = _segment(module)
        safe_action = _segment(action)
        if not safe_module or not safe_action:
            raise BadRequest('module and action are required')
        return cls(f'{safe_module}:{safe_action}')

    @property
    def module(self) -> str:
        return self.partition(':')[0]

    @property
    def action(self) -> str:
        return self.partition(':')[2]

    def __repr__(self) -> str:
        return f'PermissionSlug({str.__repr__(self)})'


def _segment(value: Any) -> str:
    if not isinstance(value, str):
        return ''
    return _WHITESPACE.sub('-', value.strip().lower())


def _flatten(values: Iterable[Any]):
    for v in values:
        if isinstance(v, (list, tuple, set, frozenset)):
            yield from _flatten(v)
        else:
            yield v


def normalize_slugs(*slugs: Any) -> List[PermissionSlug]:
    """Flatten, drop falsy entries, normalize and de-duplicate (order kept)."""
    out: List[PermissionSlug] = []
    seen = set()
    for raw in _flatten(slugs):
        if not raw:
            continue
        slug = PermissionSlug(raw)
        if slug and slug not in seen:
            seen.add(slug)
            out.append(slug)
    return out


__all__ = ['PermissionSlug', 'normalize_slugs']
