"""Central definitions of permission slugs to avoid typos in route gates.
Extend cautiously; never rename slugs silently - create new ones and retire old ones via migration if needed.
"""
from __future__ import annotations
from typing import Dict, List

ACTIONS = ['view', 'create', 'edit', 'delete']

MODULE_ACTIONS: Dict[str, List[str]] = {
    'users': ACTIONS,
    'orders': ACTIONS,
    'events': ACTIONS,
    'cakes': ACTIONS,
    'trays': ACTIONS,
    'recipes': ACTIONS,
    'raw-materials': ACTIONS,
    'articles': ACTIONS,
    'reports': ['view'],
    'audit': ['view'],
}


def build_all_permission_slugs() -> List[str]:
    return [f"{module}:{action}" for module, actions in MODULE_ACTIONS.items() for action in actions]


ALL_PERMISSION_SLUGS = build_all_permission_slugs()


class USERS:
    VIEW = 'users:view'
    EDIT = 'users:edit'


class ORDERS:
    VIEW = 'orders:view'
    CREATE = 'orders:create'
    EDIT = 'orders:edit'
    DELETE = 'orders:delete'


class EVENTS:
    VIEW = 'events:view'
    CREATE = 'events:create'
    EDIT = 'events:edit'
    DELETE = 'events:delete'


class AUDIT:
    VIEW = 'audit:view'


# Group presets used by the seed script
GROUP_PRESETS: Dict[str, List[str]] = {
    'Administrators': ['*'],
    'Sales': [ORDERS.VIEW, ORDERS.CREATE, ORDERS.EDIT, EVENTS.VIEW, EVENTS.CREATE, EVENTS.EDIT, 'cakes:view', 'trays:view', 'articles:view'],
    'Kitchen': [ORDERS.VIEW, EVENTS.VIEW, 'cakes:view', 'trays:view', 'recipes:view', 'raw-materials:view'],
}
