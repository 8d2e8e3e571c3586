from tests.test_utils_seed import (
    auth_headers, ensure_group, ensure_permissions, ensure_user, ensure_user_group_membership, login, unique,
)

ADMIN = ['users:view', 'users:edit']


def test_permission_crud_and_slug_building(client, permission_cache):
    headers = auth_headers(client, ADMIN)
    module = unique('Raw Stuff')
    resp = client.post('/iam/permissions', json={'module': module, 'action': ' View '}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    perm = resp.get_json()
    assert perm['slug'] == f"{module.lower().replace(' ', '-')}:view"

    dup = client.post('/iam/permissions', json={'module': module, 'action': 'view'}, headers=headers)
    assert dup.status_code == 409

    assert client.put(f"/iam/permissions/{perm['id']}", json={}, headers=headers).status_code == 400
    assert client.put(f"/iam/permissions/{perm['id']}", json={'action': '  '}, headers=headers).status_code == 400

    permission_cache.put(12345, {'x:view'})
    renamed = client.put(f"/iam/permissions/{perm['id']}", json={'action': 'export'}, headers=headers)
    assert renamed.status_code == 200
    assert renamed.get_json()['slug'].endswith(':export')
    # permission edits flush every cached set
    assert permission_cache.get(12345) is None

    found = client.get(f"/iam/permissions?search={module.split('-')[-1]}", headers=headers).get_json()
    assert [p['id'] for p in found['data']] == [perm['id']]

    assert client.delete(f"/iam/permissions/{perm['id']}", headers=headers).status_code == 200
    assert client.get(f"/iam/permissions/{perm['id']}", headers=headers).status_code == 404
    assert client.delete(f"/iam/permissions/{perm['id']}", headers=headers).status_code == 404


def test_permission_delete_blocked_while_referenced(client):
    headers = auth_headers(client, ADMIN)
    slug = f"{unique('mod')}:view"
    pid = ensure_permissions([slug])[slug]
    ensure_group(unique('Holders'), [slug])
    resp = client.delete(f'/iam/permissions/{pid}', headers=headers)
    assert resp.status_code == 409
    assert resp.get_json()['error']['code'] == 'PERMISSION_IN_USE'


def test_group_crud_and_safe_delete(client):
    headers = auth_headers(client, ADMIN)
    name = unique('Bakers')
    created = client.post('/iam/groups', json={'name': name, 'description': 'Kitchen staff'}, headers=headers)
    assert created.status_code == 201
    gid = created.get_json()['id']
    assert client.post('/iam/groups', json={'name': name}, headers=headers).status_code == 409
    assert client.post('/iam/groups', json={'name': '  '}, headers=headers).status_code == 400

    slug = f"{unique('mod')}:view"
    pid = ensure_permissions([slug])[slug]
    assert client.post(f'/iam/groups/{gid}/permissions', json={'permission_id': pid}, headers=headers).status_code == 201
    assert client.post(f'/iam/groups/{gid}/permissions', json={'permission_id': pid}, headers=headers).status_code == 409
    assert client.post(f'/iam/groups/{gid}/permissions', json={'permission_id': 999999}, headers=headers).status_code == 404

    detail = client.get(f'/iam/groups/{gid}', headers=headers).get_json()
    assert [p['slug'] for p in detail['permissions']] == [slug]
    bare = client.get(f'/iam/groups/{gid}?include_permissions=false', headers=headers).get_json()
    assert 'permissions' not in bare

    member = ensure_user(f"{unique('member')}@example.com")
    ensure_user_group_membership(member, gid)
    blocked = client.delete(f'/iam/groups/{gid}', headers=headers)
    assert blocked.status_code == 409
    assert blocked.get_json()['error']['code'] == 'GROUP_IN_USE'

    assert client.delete(f'/iam/users/{member}/groups/{gid}', headers=headers).status_code == 200
    assert client.delete(f'/iam/groups/{gid}', headers=headers).status_code == 200
    assert client.get(f'/iam/groups/{gid}', headers=headers).status_code == 404
    # links went with the group, so the permission is deletable now
    assert client.delete(f'/iam/permissions/{pid}', headers=headers).status_code == 200


def test_group_permission_edit_invalidates_members(client, permission_cache):
    admin = auth_headers(client, ADMIN)
    email = f"{unique('cook')}@example.com"
    uid = ensure_user(email)
    gid = ensure_group(unique('Cooks'))
    ensure_user_group_membership(uid, gid)
    cook = login(client, email)
    assert client.get('/orders', headers=cook).status_code == 403
    assert permission_cache.get(uid) == set()

    pid = ensure_permissions(['orders:view'])['orders:view']
    assert client.post(f'/iam/groups/{gid}/permissions', json={'permission_id': pid}, headers=admin).status_code == 201
    assert permission_cache.get(uid) is None
    assert client.get('/orders', headers=cook).status_code == 200

    assert client.delete(f'/iam/groups/{gid}/permissions/{pid}', headers=admin).status_code == 200
    assert client.get('/orders', headers=cook).status_code == 403
    assert client.delete(f'/iam/groups/{gid}/permissions/{pid}', headers=admin).status_code == 404


def test_user_grants_take_effect_immediately(client):
    admin = auth_headers(client, ADMIN)
    email = f"{unique('clerk')}@example.com"
    uid = ensure_user(email)
    clerk = login(client, email)
    assert client.get('/events', headers=clerk).status_code == 403

    pid = ensure_permissions(['events:view'])['events:view']
    assert client.post(f'/iam/users/{uid}/permissions', json={'permission_id': pid}, headers=admin).status_code == 201
    assert client.post(f'/iam/users/{uid}/permissions', json={'permission_id': pid}, headers=admin).status_code == 409
    assert client.get('/events', headers=clerk).status_code == 200
    listed = client.get(f'/iam/users/{uid}/permissions', headers=admin).get_json()['data']
    assert [p['slug'] for p in listed] == ['events:view']

    assert client.delete(f'/iam/users/{uid}/permissions/{pid}', headers=admin).status_code == 200
    assert client.get('/events', headers=clerk).status_code == 403
    assert client.delete(f'/iam/users/{uid}/permissions/{pid}', headers=admin).status_code == 404


def test_user_group_membership_endpoints(client):
    admin = auth_headers(client, ADMIN)
    uid = ensure_user(f"{unique('staff')}@example.com")
    gid = ensure_group(unique('Front'), ['orders:view'])
    assert client.post(f'/iam/users/{uid}/groups', json={'group_id': gid}, headers=admin).status_code == 201
    assert client.post(f'/iam/users/{uid}/groups', json={'group_id': gid}, headers=admin).status_code == 409
    assert client.post(f'/iam/users/{uid}/groups', json={'group_id': 999999}, headers=admin).status_code == 404
    assert client.post('/iam/users/999999/groups', json={'group_id': gid}, headers=admin).status_code == 404
    assert client.post(f'/iam/users/{uid}/groups', json={}, headers=admin).status_code == 400
    groups = client.get(f'/iam/users/{uid}/groups', headers=admin).get_json()['data']
    assert [g['id'] for g in groups] == [gid]


def test_reads_need_view_and_mutations_need_edit(client):
    viewer = auth_headers(client, ['users:view'])
    assert client.get('/iam/groups', headers=viewer).status_code == 200
    assert client.post('/iam/groups', json={'name': unique('Nope')}, headers=viewer).status_code == 403
    nobody = auth_headers(client, [])
    assert client.get('/iam/permissions', headers=nobody).status_code == 403


def test_user_create_get_update(client):
    headers = auth_headers(client, ADMIN)
    email = f"{unique('Baker')}@Example.com"
    resp = client.post('/iam/users', json={'name': ' Ana ', 'email': email, 'password': 'Harina2026'}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    user = resp.get_json()
    assert user['email'] == email.lower() and user['name'] == 'Ana' and user['is_active'] is True
    assert 'password_hash' not in user

    dup = client.post('/iam/users', json={'name': 'Other', 'email': email.upper(), 'password': 'Harina2026'}, headers=headers)
    assert dup.status_code == 409
    short = client.post('/iam/users', json={'name': 'Other', 'email': f"{unique('x')}@example.com", 'password': 'short'}, headers=headers)
    assert short.status_code == 400
    assert client.post('/iam/users', json={'email': f"{unique('x')}@example.com", 'password': 'Harina2026'}, headers=headers).status_code == 400

    assert client.get(f"/iam/users/{user['id']}", headers=headers).get_json()['email'] == email.lower()
    assert client.get('/iam/users/999999', headers=headers).status_code == 404

    assert client.put(f"/iam/users/{user['id']}", json={}, headers=headers).status_code == 400
    assert client.put(f"/iam/users/{user['id']}", json={'is_active': 'no'}, headers=headers).status_code == 400
    updated = client.put(f"/iam/users/{user['id']}", json={'name': 'Ana Maria'}, headers=headers)
    assert updated.status_code == 200
    assert updated.get_json()['name'] == 'Ana Maria'
    assert login(client, email.lower(), 'Harina2026')


def test_deactivate_user_blocks_login_and_existing_token(client, permission_cache):
    admin = auth_headers(client, ADMIN)
    email = f"{unique('clerk')}@example.com"
    uid = ensure_user(email)
    client.post(f'/iam/users/{uid}/permissions', json={'permission_id': ensure_permissions(['orders:view'])['orders:view']}, headers=admin)
    clerk = login(client, email)
    assert client.get('/orders', headers=clerk).status_code == 200
    assert permission_cache.get(uid) is not None

    resp = client.delete(f'/iam/users/{uid}', headers=admin)
    assert resp.status_code == 200
    assert resp.get_json()['is_active'] is False
    assert permission_cache.get(uid) is None

    assert client.get('/orders', headers=clerk).status_code == 401
    assert client.get('/iam/auth/me', headers=clerk).status_code == 401
    assert client.post('/iam/auth/login', json={'email': email, 'password': 'pw'}).status_code == 403
    inactive = client.get('/iam/users?is_active=false&page_size=50&search=' + email, headers=admin).get_json()
    assert [u['id'] for u in inactive['data']] == [uid]

    reactivated = client.put(f'/iam/users/{uid}', json={'is_active': True}, headers=admin)
    assert reactivated.get_json()['is_active'] is True
    assert client.get('/orders', headers=clerk).status_code == 200


def test_change_own_password(client):
    email = f"{unique('user')}@example.com"
    ensure_user(email, password='OldPassword1')
    headers = login(client, email, 'OldPassword1')
    wrong = client.post('/iam/auth/password', json={'current_password': 'nope', 'new_password': 'NewPassword1'}, headers=headers)
    assert wrong.status_code == 401
    weak = client.post('/iam/auth/password', json={'current_password': 'OldPassword1', 'new_password': 'abc'}, headers=headers)
    assert weak.status_code == 400
    ok = client.post('/iam/auth/password', json={'current_password': 'OldPassword1', 'new_password': 'NewPassword1'}, headers=headers)
    assert ok.status_code == 200
    assert client.post('/iam/auth/login', json={'email': email, 'password': 'OldPassword1'}).status_code == 401
    assert login(client, email, 'NewPassword1')
    assert client.post('/iam/auth/password', json={}).status_code == 401
