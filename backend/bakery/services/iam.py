"""Permission, group, user and user-grant administration.

Every mutation that can change somebody's effective permission set
invalidates the affected cache entries right after the commit:

* permission edit/delete: every entry (slugs may have changed under anyone)
* group permission link add/remove: every member of the group
* user group / direct grant add/remove: that user
* user update / deactivation: that user
"""
from __future__ import annotations
from typing import Any, Dict, Mapping, Optional

from flask import current_app
from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError

from bakery import get_db
from bakery.models.authz import Group, GroupPermission, Permission, User, UserGroup, UserPermission
from bakery.services.permission_cache import current_permission_cache
from bakery.services.policy import count_permission_references, group_member_ids, resolve_effective_permissions
from bakery.utils.errors import BadRequest, Conflict, Forbidden, NotFound, Unauthorized, assert_found, from_db_error
from bakery.utils.listing import iso, paginate
from bakery.utils.slugs import PermissionSlug
from bakery.utils.validation import parse_bool_param, parse_positive_int, sanitize_string


def _commit(session, message: str):
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise from_db_error(exc, message) from exc


def _search(q, columns, params: Mapping[str, Any]):
    term = sanitize_string(params.get('search'))
    if term:
        like = f'%{term}%'
        q = q.filter(or_(*[c.ilike(like) for c in columns]))
    return q


# --- serializers ---
def permission_json(p: Permission) -> Dict[str, Any]:
    return {
        'id': p.id,
        'module': p.module,
        'action': p.action,
        'slug': p.slug,
        'created_at': iso(p.created_at),
        'updated_at': iso(p.updated_at),
    }


def group_json(g: Group, include_permissions: bool = False) -> Dict[str, Any]:
    data = {'id': g.id, 'name': g.name, 'description': g.description}
    if include_permissions:
        data['permissions'] = [permission_json(p) for p in _group_permissions(get_db(), g.id)]
    return data


def user_json(u: User) -> Dict[str, Any]:
    return {'id': u.id, 'name': u.name, 'email': u.email, 'is_active': u.is_active}


# --- lookups ---
def _group_permissions(session, group_id: int):
    return session.execute(
        select(Permission).join(GroupPermission, GroupPermission.permission_id == Permission.id)
        .where(GroupPermission.group_id == group_id).order_by(Permission.id)
    ).scalars().all()


def _get_permission(session, permission_id) -> Permission:
    return assert_found(session.get(Permission, parse_positive_int(permission_id, 'permission_id')), 'Permission not found')


def _get_group(session, group_id) -> Group:
    return assert_found(session.get(Group, parse_positive_int(group_id, 'group_id')), 'Group not found')


def _get_user(session, user_id) -> User:
    return assert_found(session.get(User, parse_positive_int(user_id, 'user_id')), 'User not found')


def _get_active_user(session, user_id) -> User:
    u = _get_user(session, user_id)
    if not u.is_active:
        raise Unauthorized('User is inactive')
    return u


def _slug_taken(session, slug: str, exclude_id: Optional[int] = None) -> bool:
    q = select(Permission.id).where(Permission.slug == slug)
    if exclude_id is not None:
        q = q.where(Permission.id != exclude_id)
    return session.execute(q).first() is not None


def _group_name_taken(session, name: str, exclude_id: Optional[int] = None) -> bool:
    q = select(Group.id).where(Group.name == name)
    if exclude_id is not None:
        q = q.where(Group.id != exclude_id)
    return session.execute(q).first() is not None


# --- permissions ---
def list_permissions(params: Mapping[str, Any]):
    q = get_db().query(Permission)
    q = _search(q, [Permission.module, Permission.action, Permission.slug], params)
    return paginate(q.order_by(Permission.module.asc(), Permission.action.asc()), permission_json)


def get_permission(permission_id):
    return permission_json(_get_permission(get_db(), permission_id))


def create_permission(data: Mapping[str, Any]):
    session = get_db()
    slug = PermissionSlug.build(data.get('module'), data.get('action'))
    if _slug_taken(session, slug):
        raise Conflict(f'Permission {slug} already exists')
    p = Permission(module=slug.module, action=slug.action, slug=str(slug))
    session.add(p)
    _commit(session, 'Could not create the permission')
    return permission_json(p)


def update_permission(permission_id, data: Mapping[str, Any]):
    session = get_db()
    p = _get_permission(session, permission_id)
    changes = {}
    for field in ('module', 'action'):
        if field in data:
            value = sanitize_string(data.get(field))
            if not value:
                raise BadRequest(f'{field} cannot be empty')
            changes[field] = value
    if not changes:
        raise BadRequest('Nothing to update')
    slug = PermissionSlug.build(changes.get('module', p.module), changes.get('action', p.action))
    if _slug_taken(session, slug, exclude_id=p.id):
        raise Conflict(f'Permission {slug} already exists')
    p.module, p.action, p.slug = slug.module, slug.action, str(slug)
    _commit(session, 'Could not update the permission')
    current_permission_cache().flush_all()
    return permission_json(p)


def delete_permission(permission_id):
    session = get_db()
    p = _get_permission(session, permission_id)
    groups, users = count_permission_references(p.id, session)
    if groups or users:
        raise Conflict(
            'Permission is still assigned and cannot be deleted',
            details={'groups': groups, 'users': users},
            error_code='PERMISSION_IN_USE',
        )
    data = permission_json(p)
    session.delete(p)
    _commit(session, 'Could not delete the permission')
    current_permission_cache().flush_all()
    return data


# --- groups ---
def list_groups(params: Mapping[str, Any]):
    q = get_db().query(Group)
    q = _search(q, [Group.name, Group.description], params)
    return paginate(q.order_by(Group.name.asc()), group_json)


def get_group(group_id, include_permissions: bool = True):
    return group_json(_get_group(get_db(), group_id), include_permissions)


def create_group(data: Mapping[str, Any]):
    session = get_db()
    name = sanitize_string(data.get('name'))
    if not name:
        raise BadRequest('name required')
    if _group_name_taken(session, name):
        raise Conflict('A group with that name already exists')
    g = Group(name=name, description=sanitize_string(data.get('description')) or None)
    session.add(g)
    _commit(session, 'Could not create the group')
    return group_json(g)


def update_group(group_id, data: Mapping[str, Any]):
    session = get_db()
    g = _get_group(session, group_id)
    touched = False
    if 'name' in data:
        name = sanitize_string(data.get('name'))
        if not name:
            raise BadRequest('name cannot be empty')
        if _group_name_taken(session, name, exclude_id=g.id):
            raise Conflict('A group with that name already exists')
        g.name = name
        touched = True
    if 'description' in data:
        g.description = sanitize_string(data.get('description')) or None
        touched = True
    if not touched:
        raise BadRequest('Nothing to update')
    _commit(session, 'Could not update the group')
    return group_json(g)


def delete_group(group_id):
    session = get_db()
    g = _get_group(session, group_id)
    members = group_member_ids(g.id, session)
    if members:
        raise Conflict(
            'Group has members and cannot be deleted',
            details={'users': len(members)},
            error_code='GROUP_IN_USE',
        )
    data = group_json(g)
    session.execute(delete(GroupPermission).where(GroupPermission.group_id == g.id))
    session.expire(g, ['permissions'])
    session.delete(g)
    _commit(session, 'Could not delete the group')
    return data


def list_group_permissions(group_id):
    session = get_db()
    g = _get_group(session, group_id)
    return [permission_json(p) for p in _group_permissions(session, g.id)]


def add_group_permission(group_id, permission_id):
    session = get_db()
    g = _get_group(session, group_id)
    p = _get_permission(session, permission_id)
    exists = session.execute(
        select(GroupPermission.id).where(GroupPermission.group_id == g.id, GroupPermission.permission_id == p.id)
    ).first()
    if exists:
        raise Conflict('The group already has that permission')
    session.add(GroupPermission(group_id=g.id, permission_id=p.id))
    _commit(session, 'Could not assign the permission to the group')
    current_permission_cache().invalidate_many(group_member_ids(g.id, session))
    return {'group_id': g.id, 'permission_id': p.id, 'slug': p.slug}


def remove_group_permission(group_id, permission_id):
    session = get_db()
    g = _get_group(session, group_id)
    pid = parse_positive_int(permission_id, 'permission_id')
    link = session.execute(
        select(GroupPermission).where(GroupPermission.group_id == g.id, GroupPermission.permission_id == pid)
    ).scalar_one_or_none()
    if link is None:
        raise NotFound('The group does not have that permission')
    session.delete(link)
    _commit(session, 'Could not remove the permission from the group')
    current_permission_cache().invalidate_many(group_member_ids(g.id, session))
    return {'group_id': g.id, 'permission_id': pid}


# --- users ---
MIN_PASSWORD_LENGTH = 8


def _validate_new_password(password: Any) -> str:
    if not isinstance(password, str) or len(password.strip()) < MIN_PASSWORD_LENGTH:
        raise BadRequest(f'Password must be at least {MIN_PASSWORD_LENGTH} characters long')
    return password


def _email_taken(session, email: str, exclude_id: Optional[int] = None) -> bool:
    q = select(User.id).where(User.email == email)
    if exclude_id is not None:
        q = q.where(User.id != exclude_id)
    return session.execute(q).first() is not None


def list_users(params: Mapping[str, Any]):
    q = get_db().query(User)
    q = _search(q, [User.name, User.email], params)
    if params.get('is_active') not in (None, ''):
        q = q.filter(User.is_active == parse_bool_param(params.get('is_active')))
    return paginate(q.order_by(User.id.asc()), user_json)


def get_user(user_id):
    return user_json(_get_user(get_db(), user_id))


def create_user(data: Mapping[str, Any]):
    session = get_db()
    name = sanitize_string(data.get('name'))
    email = sanitize_string(data.get('email')).lower()
    if not name or not email:
        raise BadRequest('name and email required')
    if '@' not in email:
        raise BadRequest('email invalid')
    password = _validate_new_password(data.get('password'))
    if _email_taken(session, email):
        raise Conflict('A user with that email already exists')
    u = User(name=name, email=email, password_hash='', is_active=True)
    u.set_password(password)
    session.add(u)
    _commit(session, 'Could not create the user')
    current_app.logger.info('user %s created (%s)', u.id, email)
    return user_json(u)


def update_user(user_id, data: Mapping[str, Any]):
    session = get_db()
    u = _get_user(session, user_id)
    touched = False
    if 'name' in data:
        name = sanitize_string(data.get('name'))
        if not name:
            raise BadRequest('name cannot be empty')
        u.name = name
        touched = True
    if 'email' in data:
        email = sanitize_string(data.get('email')).lower()
        if not email or '@' not in email:
            raise BadRequest('email invalid')
        if _email_taken(session, email, exclude_id=u.id):
            raise Conflict('A user with that email already exists')
        u.email = email
        touched = True
    if 'is_active' in data:
        if not isinstance(data.get('is_active'), bool):
            raise BadRequest('is_active must be a boolean')
        u.is_active = data['is_active']
        touched = True
    if not touched:
        raise BadRequest('Nothing to update')
    _commit(session, 'Could not update the user')
    current_permission_cache().invalidate(u.id)
    return user_json(u)


def deactivate_user(user_id):
    """Soft delete: the account stays for audit history but can no longer sign in."""
    session = get_db()
    u = _get_user(session, user_id)
    u.is_active = False
    _commit(session, 'Could not deactivate the user')
    current_permission_cache().invalidate(u.id)
    current_app.logger.info('user %s deactivated', u.id)
    return user_json(u)


# --- user grants ---
def list_user_groups(user_id):
    session = get_db()
    u = _get_user(session, user_id)
    rows = session.execute(
        select(Group).join(UserGroup, UserGroup.group_id == Group.id).where(UserGroup.user_id == u.id).order_by(Group.id)
    ).scalars()
    return [group_json(g) for g in rows]


def add_user_group(user_id, group_id):
    session = get_db()
    u = _get_user(session, user_id)
    g = _get_group(session, group_id)
    exists = session.execute(
        select(UserGroup.id).where(UserGroup.user_id == u.id, UserGroup.group_id == g.id)
    ).first()
    if exists:
        raise Conflict('The user already belongs to that group')
    session.add(UserGroup(user_id=u.id, group_id=g.id))
    _commit(session, 'Could not add the user to the group')
    current_permission_cache().invalidate(u.id)
    return {'user_id': u.id, 'group_id': g.id}


def remove_user_group(user_id, group_id):
    session = get_db()
    u = _get_user(session, user_id)
    gid = parse_positive_int(group_id, 'group_id')
    link = session.execute(
        select(UserGroup).where(UserGroup.user_id == u.id, UserGroup.group_id == gid)
    ).scalar_one_or_none()
    if link is None:
        raise NotFound('The user does not belong to that group')
    session.delete(link)
    _commit(session, 'Could not remove the user from the group')
    current_permission_cache().invalidate(u.id)
    return {'user_id': u.id, 'group_id': gid}


def list_user_permissions(user_id):
    session = get_db()
    u = _get_user(session, user_id)
    rows = session.execute(
        select(Permission).join(UserPermission, UserPermission.permission_id == Permission.id)
        .where(UserPermission.user_id == u.id).order_by(Permission.id)
    ).scalars()
    return [permission_json(p) for p in rows]


def add_user_permission(user_id, permission_id):
    session = get_db()
    u = _get_user(session, user_id)
    p = _get_permission(session, permission_id)
    exists = session.execute(
        select(UserPermission.id).where(UserPermission.user_id == u.id, UserPermission.permission_id == p.id)
    ).first()
    if exists:
        raise Conflict('The user already has that permission')
    session.add(UserPermission(user_id=u.id, permission_id=p.id))
    _commit(session, 'Could not grant the permission')
    current_permission_cache().invalidate(u.id)
    return {'user_id': u.id, 'permission_id': p.id, 'slug': p.slug}


def remove_user_permission(user_id, permission_id):
    session = get_db()
    u = _get_user(session, user_id)
    pid = parse_positive_int(permission_id, 'permission_id')
    link = session.execute(
        select(UserPermission).where(UserPermission.user_id == u.id, UserPermission.permission_id == pid)
    ).scalar_one_or_none()
    if link is None:
        raise NotFound('The user does not have that permission')
    session.delete(link)
    _commit(session, 'Could not revoke the permission')
    current_permission_cache().invalidate(u.id)
    return {'user_id': u.id, 'permission_id': pid}


# --- authentication ---
def authenticate(email: Any, password: Any) -> User:
    email = sanitize_string(email).lower()
    if not email or not isinstance(password, str) or not password:
        raise BadRequest('email and password required')
    user = get_db().execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user is None or not user.verify_password(password):
        current_app.logger.warning('failed login for %s', email)
        raise Unauthorized('Invalid credentials')
    if not user.is_active:
        raise Forbidden('User is inactive')
    return user


def profile(user_id) -> Dict[str, Any]:
    u = _get_active_user(get_db(), user_id)
    data = user_json(u)
    data['permissions'] = sorted(resolve_effective_permissions(u.id))
    return data


def change_password(user_id, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Self-service change; the current password must be supplied."""
    session = get_db()
    u = _get_active_user(session, user_id)
    current = data.get('current_password')
    if not isinstance(current, str) or not current:
        raise BadRequest('current_password required')
    new_password = _validate_new_password(data.get('new_password'))
    if not u.verify_password(current):
        raise Unauthorized('Current password is incorrect')
    u.set_password(new_password)
    _commit(session, 'Could not update the password')
    return {'id': u.id, 'message': 'Password updated'}
