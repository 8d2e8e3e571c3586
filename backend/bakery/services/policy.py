from __future__ import annotations
from typing import FrozenSet, List, Set
from flask import current_app, has_app_context
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from bakery.models.authz import UserPermission, UserGroup, GroupPermission, Permission, User
from bakery.utils.errors import Unauthorized, from_db_error
from bakery.utils.slugs import PermissionSlug
from bakery import get_db


def resolve_effective_permissions(user_id, session=None) -> FrozenSet[PermissionSlug]:
    """Union of the user's direct grants and the grants of every group they belong to.

    Pure read. Store failures surface as Internal (or the matching kind) with a
    user-facing message.
    """
    if user_id is None or user_id == '':
        raise Unauthorized('Could not identify the user.')
    session = session or get_db()
    perm_ids: Set[int] = set()
    try:
        perm_ids.update(session.execute(
            select(UserPermission.permission_id).where(UserPermission.user_id == user_id)
        ).scalars())
    except SQLAlchemyError as exc:
        raise from_db_error(exc, "Could not load the user's direct permissions.") from exc
    try:
        group_ids = list(session.execute(
            select(UserGroup.group_id).where(UserGroup.user_id == user_id)
        ).scalars())
    except SQLAlchemyError as exc:
        raise from_db_error(exc, "Could not load the user's groups.") from exc
    if group_ids:
        try:
            perm_ids.update(session.execute(
                select(GroupPermission.permission_id).where(GroupPermission.group_id.in_(group_ids))
            ).scalars())
        except SQLAlchemyError as exc:
            raise from_db_error(exc, "Could not load the groups' permissions.") from exc
    if not perm_ids:
        return frozenset()
    try:
        slugs = session.execute(select(Permission.slug).where(Permission.id.in_(perm_ids))).scalars().all()
    except SQLAlchemyError as exc:
        raise from_db_error(exc, 'Could not load the permission slugs.') from exc
    resolved = frozenset(PermissionSlug(s) for s in slugs if s)
    if has_app_context():
        current_app.logger.debug('resolved %d permissions for user %s', len(resolved), user_id)
    return resolved


def group_member_ids(group_id: int, session=None) -> List[int]:
    """Users whose effective permissions depend on the given group."""
    session = session or get_db()
    return list(session.execute(select(UserGroup.user_id).where(UserGroup.group_id == group_id)).scalars())


def count_permission_references(permission_id: int, session=None):
    """Return (group_link_count, user_grant_count) for safe-delete checks."""
    from sqlalchemy import func
    session = session or get_db()
    groups = session.execute(select(func.count()).select_from(GroupPermission).where(GroupPermission.permission_id == permission_id)).scalar_one()
    users = session.execute(select(func.count()).select_from(UserPermission).where(UserPermission.permission_id == permission_id)).scalar_one()
    return groups, users


def is_active_user(user_id: int, session=None) -> bool:
    """False for unknown or deactivated accounts."""
    session = session or get_db()
    try:
        active = session.execute(select(User.is_active).where(User.id == user_id)).scalar_one_or_none()
    except SQLAlchemyError as exc:
        raise from_db_error(exc, 'Could not verify the user account.') from exc
    return bool(active)
