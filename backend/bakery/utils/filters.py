from __future__ import annotations
from typing import Any, Dict

from bakery.utils.errors import BadRequest


def apply_filters(query, specs: Dict[str, Dict[str, Any]], params: Dict[str, Any]):
    """Generic filter builder.

    specs: { param_name: { 'op': callable(query, value)->query, 'coerce': type/func, 'validate': callable(optional) } }
    Empty values are ignored.
    """
    for name, meta in specs.items():
        if name not in params or params[name] in (None, ''):
            continue
        val = params[name]
        if 'coerce' in meta:
            try:
                val = meta['coerce'](val)
            except BadRequest:
                raise
            except Exception:
                raise BadRequest(f'{name} invalid')
        if 'validate' in meta and not meta['validate'](val):
            raise BadRequest(f'{name} invalid')
        query = meta['op'](query, val)
    return query
