from flask import Blueprint, request
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity
from bakery.constants.permissions import AUDIT, USERS
from bakery.decorators.audit import audit_log
from bakery.decorators.auth import require_permissions
from bakery.services import iam
from bakery.services.audit import list_audit_logs
from bakery.utils.errors import BadRequest
from bakery.utils.validation import parse_bool_param

iam_bp = Blueprint('iam', __name__)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest('JSON object body required')
    return data


def _required_id(data, key: str):
    if data.get(key) in (None, ''):
        raise BadRequest(f'{key} required')
    return data[key]


# --- auth ---
@iam_bp.post('/auth/login')
def login():
    data = _json_body()
    user = iam.authenticate(data.get('email'), data.get('password'))
    token = create_access_token(identity=str(user.id))
    return {'access_token': token, 'user': iam.user_json(user)}


@iam_bp.get('/auth/me')
@jwt_required()
def me():
    return iam.profile(get_jwt_identity())


@iam_bp.post('/auth/password')
@jwt_required()
@audit_log('USER.PASSWORD', entity='User', entity_id_key='id')
def change_password():
    return iam.change_password(get_jwt_identity(), _json_body())


# --- permissions ---
@iam_bp.get('/permissions')
@require_permissions(USERS.VIEW)
def list_permissions():
    return iam.list_permissions(request.args)


@iam_bp.get('/permissions/<int:permission_id>')
@require_permissions(USERS.VIEW)
def get_permission(permission_id: int):
    return iam.get_permission(permission_id)


@iam_bp.post('/permissions')
@require_permissions(USERS.EDIT)
@audit_log('PERMISSION.CREATE', entity='Permission', entity_id_key='id', meta_keys=['slug'])
def create_permission():
    return iam.create_permission(_json_body()), 201


@iam_bp.put('/permissions/<int:permission_id>')
@require_permissions(USERS.EDIT)
@audit_log('PERMISSION.UPDATE', entity='Permission', entity_id_key='id', meta_keys=['slug'])
def update_permission(permission_id: int):
    return iam.update_permission(permission_id, _json_body())


@iam_bp.delete('/permissions/<int:permission_id>')
@require_permissions(USERS.EDIT)
@audit_log('PERMISSION.DELETE', entity='Permission', entity_id_arg='permission_id', meta_keys=['slug'])
def delete_permission(permission_id: int):
    return iam.delete_permission(permission_id)


# --- groups ---
@iam_bp.get('/groups')
@require_permissions(USERS.VIEW)
def list_groups():
    return iam.list_groups(request.args)


@iam_bp.get('/groups/<int:group_id>')
@require_permissions(USERS.VIEW)
def get_group(group_id: int):
    include = parse_bool_param(request.args.get('include_permissions'), default=True)
    return iam.get_group(group_id, include_permissions=include)


@iam_bp.post('/groups')
@require_permissions(USERS.EDIT)
@audit_log('GROUP.CREATE', entity='Group', entity_id_key='id', meta_keys=['name'])
def create_group():
    return iam.create_group(_json_body()), 201


@iam_bp.put('/groups/<int:group_id>')
@require_permissions(USERS.EDIT)
@audit_log('GROUP.UPDATE', entity='Group', entity_id_key='id', meta_keys=['name'])
def update_group(group_id: int):
    return iam.update_group(group_id, _json_body())


@iam_bp.delete('/groups/<int:group_id>')
@require_permissions(USERS.EDIT)
@audit_log('GROUP.DELETE', entity='Group', entity_id_arg='group_id', meta_keys=['name'])
def delete_group(group_id: int):
    return iam.delete_group(group_id)


@iam_bp.get('/groups/<int:group_id>/permissions')
@require_permissions(USERS.VIEW)
def list_group_permissions(group_id: int):
    return {'data': iam.list_group_permissions(group_id)}


@iam_bp.post('/groups/<int:group_id>/permissions')
@require_permissions(USERS.EDIT)
@audit_log('GROUP.PERM.ADD', entity='Group', entity_id_arg='group_id', meta_keys=['slug'])
def add_group_permission(group_id: int):
    data = _json_body()
    return iam.add_group_permission(group_id, _required_id(data, 'permission_id')), 201


@iam_bp.delete('/groups/<int:group_id>/permissions/<int:permission_id>')
@require_permissions(USERS.EDIT)
@audit_log('GROUP.PERM.REMOVE', entity='Group', entity_id_arg='group_id', meta_keys=['permission_id'])
def remove_group_permission(group_id: int, permission_id: int):
    return iam.remove_group_permission(group_id, permission_id)


# --- users ---
@iam_bp.get('/users')
@require_permissions(USERS.VIEW)
def list_users():
    return iam.list_users(request.args)


@iam_bp.get('/users/<int:user_id>')
@require_permissions(USERS.VIEW)
def get_user(user_id: int):
    return iam.get_user(user_id)


@iam_bp.post('/users')
@require_permissions(USERS.EDIT)
@audit_log('USER.CREATE', entity='User', entity_id_key='id', meta_keys=['email'])
def create_user():
    return iam.create_user(_json_body()), 201


@iam_bp.put('/users/<int:user_id>')
@require_permissions(USERS.EDIT)
@audit_log('USER.UPDATE', entity='User', entity_id_key='id', meta_keys=['email', 'is_active'])
def update_user(user_id: int):
    return iam.update_user(user_id, _json_body())


@iam_bp.delete('/users/<int:user_id>')
@require_permissions(USERS.EDIT)
@audit_log('USER.DEACTIVATE', entity='User', entity_id_arg='user_id', meta_keys=['email'])
def deactivate_user(user_id: int):
    return iam.deactivate_user(user_id)


@iam_bp.get('/users/<int:user_id>/groups')
@require_permissions(USERS.VIEW)
def list_user_groups(user_id: int):
    return {'data': iam.list_user_groups(user_id)}


@iam_bp.post('/users/<int:user_id>/groups')
@require_permissions(USERS.EDIT)
@audit_log('USER.GROUP.ADD', entity='User', entity_id_arg='user_id', meta_keys=['group_id'])
def add_user_group(user_id: int):
    data = _json_body()
    return iam.add_user_group(user_id, _required_id(data, 'group_id')), 201


@iam_bp.delete('/users/<int:user_id>/groups/<int:group_id>')
@require_permissions(USERS.EDIT)
@audit_log('USER.GROUP.REMOVE', entity='User', entity_id_arg='user_id', meta_keys=['group_id'])
def remove_user_group(user_id: int, group_id: int):
    return iam.remove_user_group(user_id, group_id)


@iam_bp.get('/users/<int:user_id>/permissions')
@require_permissions(USERS.VIEW)
def list_user_permissions(user_id: int):
    return {'data': iam.list_user_permissions(user_id)}


@iam_bp.post('/users/<int:user_id>/permissions')
@require_permissions(USERS.EDIT)
@audit_log('USER.PERM.ADD', entity='User', entity_id_arg='user_id', meta_keys=['slug'])
def add_user_permission(user_id: int):
    data = _json_body()
    return iam.add_user_permission(user_id, _required_id(data, 'permission_id')), 201


@iam_bp.delete('/users/<int:user_id>/permissions/<int:permission_id>')
@require_permissions(USERS.EDIT)
@audit_log('USER.PERM.REMOVE', entity='User', entity_id_arg='user_id', meta_keys=['permission_id'])
def remove_user_permission(user_id: int, permission_id: int):
    return iam.remove_user_permission(user_id, permission_id)


# --- audit ---
@iam_bp.get('/audit/logs')
@require_permissions(AUDIT.VIEW)
def audit_logs():
    return list_audit_logs(request.args)
