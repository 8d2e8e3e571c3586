import pytest
from flask_jwt_extended import create_access_token

from bakery import get_db
from bakery.models.authz import User
from bakery.decorators.auth import AuthorizationGate, require_permissions
from bakery.services.permission_cache import PermissionCache
from bakery.utils.errors import Forbidden, Unauthorized
from tests.test_utils_seed import auth_headers, login, seed_user_with_permissions, unique


class CountingResolver:
    def __init__(self, slugs):
        self.slugs = frozenset(slugs)
        self.calls = 0

    def __call__(self, user_id):
        self.calls += 1
        return self.slugs


def _always_active(user_id):
    return True


def _gate(resolver, active_check=_always_active):
    return AuthorizationGate(PermissionCache(), resolver, active_check)


def _view():
    return 'ok'


def _bearer(app, identity='42'):
    with app.app_context():
        return {'Authorization': f'Bearer {create_access_token(identity=identity)}'}


def test_empty_requirement_is_pass_through():
    gate = _gate(CountingResolver([]))
    assert gate.require()(_view) is _view
    assert gate.require(None, [], '')(_view) is _view
    assert require_permissions()(_view) is _view


def test_resolves_once_then_serves_from_cache(app_instance):
    resolver = CountingResolver(['orders:view'])
    gate = _gate(resolver)
    guarded = gate.require('ORDERS:View')(_view)
    headers = _bearer(app_instance)
    with app_instance.test_request_context(headers=headers):
        assert guarded() == 'ok'
    with app_instance.test_request_context(headers=headers):
        assert guarded() == 'ok'
    assert resolver.calls == 1
    assert gate.cache.get('42') == {'orders:view'}


def test_stacked_gates_share_the_request_set(app_instance):
    resolver = CountingResolver(['orders:view', 'orders:edit'])
    gate = _gate(resolver)
    guarded = gate.require('orders:view')(gate.require('orders:edit')(_view))
    with app_instance.test_request_context(headers=_bearer(app_instance)):
        assert guarded() == 'ok'
    # the second gate reused g.user_permissions; the cache was consulted once
    assert resolver.calls == 1


def test_missing_permission_is_forbidden_with_generic_message(app_instance):
    gate = _gate(CountingResolver(['orders:view']))
    guarded = gate.require('orders:view', 'orders:delete')(_view)
    with app_instance.test_request_context(headers=_bearer(app_instance)):
        with pytest.raises(Forbidden) as exc:
            guarded()
    assert 'orders:delete' not in exc.value.message


def test_invalidated_user_is_resolved_again(app_instance):
    resolver = CountingResolver(['orders:view'])
    gate = _gate(resolver)
    guarded = gate.require('orders:view')(_view)
    headers = _bearer(app_instance, identity='7')
    with app_instance.test_request_context(headers=headers):
        guarded()
    gate.cache.invalidate('7')
    with app_instance.test_request_context(headers=headers):
        guarded()
    assert resolver.calls == 2


def test_route_without_token_is_unauthorized(client):
    resp = client.get('/orders')
    assert resp.status_code == 401
    assert resp.get_json()['error']['code'] == 'AUTH_REQUIRED'


def test_route_denial_and_grant(client):
    denied = client.get('/orders', headers=auth_headers(client, ['events:view']))
    assert denied.status_code == 403
    body = denied.get_json()['error']
    assert body['code'] == 'FORBIDDEN'
    assert 'orders:view' not in body['detail']
    allowed = client.get('/orders', headers=auth_headers(client, ['orders:view']))
    assert allowed.status_code == 200


def test_non_numeric_identity_is_unauthorized(app_instance):
    gate = _gate(CountingResolver(['orders:view']))
    guarded = gate.require('orders:view')(_view)
    with app_instance.test_request_context(headers=_bearer(app_instance, identity='not-a-number')):
        with pytest.raises(Unauthorized):
            guarded()


def test_inactive_account_is_rejected_and_evicted(app_instance):
    resolver = CountingResolver(['orders:view'])
    active = {'flag': True}
    gate = _gate(resolver, active_check=lambda user_id: active['flag'])
    guarded = gate.require('orders:view')(_view)
    headers = _bearer(app_instance, identity='9')
    with app_instance.test_request_context(headers=headers):
        assert guarded() == 'ok'
    active['flag'] = False
    with app_instance.test_request_context(headers=headers):
        with pytest.raises(Unauthorized):
            guarded()
    assert gate.cache.get('9') is None


def test_module_decorator_checks_through_the_app_gate(app_instance, monkeypatch):
    seen = []
    gate = app_instance.extensions['authorization_gate']
    monkeypatch.setattr(gate, 'check', lambda normalized: seen.append(normalized))
    guarded = require_permissions(' Orders:VIEW ', ['orders:edit'])(_view)
    with app_instance.test_request_context():
        assert guarded() == 'ok'
        assert guarded() == 'ok'
    assert seen == [['orders:view', 'orders:edit']] * 2
    assert guarded.required_permissions == ('orders:view', 'orders:edit')


def test_existing_token_stops_working_once_user_is_deactivated(client):
    email = f"{unique('user')}@example.com"
    user_id = seed_user_with_permissions(['orders:view'], email=email)
    headers = login(client, email)
    assert client.get('/orders', headers=headers).status_code == 200
    session = get_db()
    session.get(User, user_id).is_active = False
    session.commit()
    resp = client.get('/orders', headers=headers)
    assert resp.status_code == 401
    assert resp.get_json()['error']['code'] == 'AUTH_REQUIRED'
