import pytest
from sqlalchemy.exc import OperationalError

from bakery.services.policy import count_permission_references, group_member_ids, resolve_effective_permissions
from bakery.utils.errors import Internal, Unauthorized
from tests.test_utils_seed import (
    ensure_group, ensure_permissions, ensure_user, ensure_user_group_membership, grant_user_permissions, unique,
)


def _new_user():
    return ensure_user(f"{unique('policy')}@example.com")


def test_direct_grant_only():
    uid = _new_user()
    grant_user_permissions(uid, ['orders:view'])
    assert resolve_effective_permissions(uid) == {'orders:view'}


def test_group_inheritance_only():
    uid = _new_user()
    gid = ensure_group(unique('Editors'), ['orders:edit'])
    ensure_user_group_membership(uid, gid)
    assert resolve_effective_permissions(uid) == {'orders:edit'}


def test_union_of_direct_and_every_group():
    uid = _new_user()
    grant_user_permissions(uid, ['orders:view', 'events:view'])
    g1 = ensure_group(unique('G1'), ['orders:view', 'orders:edit'])
    g2 = ensure_group(unique('G2'), ['events:delete'])
    ensure_user_group_membership(uid, g1)
    ensure_user_group_membership(uid, g2)
    assert resolve_effective_permissions(uid) == {'orders:view', 'events:view', 'orders:edit', 'events:delete'}


def test_user_without_grants_resolves_to_empty_set():
    assert resolve_effective_permissions(_new_user()) == frozenset()


def test_slugs_are_lower_cased():
    from bakery import get_db
    from bakery.models.authz import Permission, UserPermission
    session = get_db()
    raw = unique('Legacy') + ':VIEW'
    p = Permission(module='legacy', action='VIEW', slug=raw)
    session.add(p); session.flush()
    uid = _new_user()
    session.add(UserPermission(user_id=uid, permission_id=p.id))
    session.commit()
    assert resolve_effective_permissions(uid) == {raw.lower()}


@pytest.mark.parametrize('missing', [None, ''])
def test_missing_user_is_unauthorized(missing):
    with pytest.raises(Unauthorized):
        resolve_effective_permissions(missing)


def test_store_failure_surfaces_as_internal():
    class BrokenSession:
        def execute(self, *a, **k):
            raise OperationalError('SELECT 1', {}, Exception('connection lost'))

    with pytest.raises(Internal) as exc:
        resolve_effective_permissions(1, session=BrokenSession())
    assert 'direct permissions' in exc.value.message


def test_reference_helpers():
    uid = _new_user()
    gid = ensure_group(unique('Refs'), ['cakes:view'])
    ensure_user_group_membership(uid, gid)
    pid = ensure_permissions(['cakes:view'])['cakes:view']
    grant_user_permissions(uid, ['cakes:view'])
    assert uid in group_member_ids(gid)
    groups, users = count_permission_references(pid)
    assert groups >= 1 and users >= 1
