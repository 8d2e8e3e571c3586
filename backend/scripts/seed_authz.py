#!/usr/bin/env python
"""Idempotent seed script for permissions, groups, statuses and the first admin.

Usage:
    python backend/scripts/seed_authz.py                # seed normally
    python backend/scripts/seed_authz.py --show-groups  # print group -> permission counts (after ensuring seed)
    python backend/scripts/seed_authz.py --dry-run      # run logic then rollback (no DB changes)
    python backend/scripts/seed_authz.py --dry-run --show-groups

SEED_ADMIN_EMAIL / SEED_ADMIN_PASSWORD override the initial admin credentials.
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from sqlalchemy import select, inspect

# Allow running from repo root or from backend/
sys.path.append(os.path.abspath('backend'))
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from bakery import create_app, get_db  # type: ignore
from bakery.constants.permissions import GROUP_PRESETS, MODULE_ACTIONS, build_all_permission_slugs
from bakery.models import Base, ensure_statuses
from bakery.models.authz import Group, GroupPermission, Permission, User, UserGroup
from bakery.utils.slugs import PermissionSlug

ADMIN_GROUP = 'Administrators'


def ensure_permissions(session):
    existing = set(session.execute(select(Permission.slug)).scalars().all())
    created = 0
    for module, actions in MODULE_ACTIONS.items():
        for action in actions:
            slug = PermissionSlug.build(module, action)
            if slug not in existing:
                session.add(Permission(module=slug.module, action=slug.action, slug=str(slug)))
                created += 1
    session.flush()
    return created


def ensure_groups(session):
    groups = {g.name: g for g in session.execute(select(Group)).scalars().all()}
    created = 0
    for name in GROUP_PRESETS:
        if name not in groups:
            group = Group(name=name, description=f'{name} (seeded)')
            session.add(group)
            groups[name] = group
            created += 1
    session.flush()

    all_slugs = set(build_all_permission_slugs())
    perms_by_slug = {p.slug: p for p in session.execute(select(Permission)).scalars().all()}
    for name, slugs in GROUP_PRESETS.items():
        group = groups[name]
        desired = all_slugs if '*' in slugs else {PermissionSlug(s) for s in slugs}
        current = set(session.execute(
            select(Permission.slug).join(GroupPermission, GroupPermission.permission_id == Permission.id)
            .where(GroupPermission.group_id == group.id)
        ).scalars().all())
        for slug in sorted(desired - current):
            perm = perms_by_slug.get(slug)
            if perm is None:
                print(f"[WARN] Missing permission referenced by group {name}: {slug}")
                continue
            session.add(GroupPermission(group_id=group.id, permission_id=perm.id))
    session.flush()
    return created


def ensure_initial_admin(session):
    admin_group = session.execute(select(Group).where(Group.name == ADMIN_GROUP)).scalar_one_or_none()
    if not admin_group:
        print(f'[WARN] {ADMIN_GROUP} group missing; skipping admin user creation')
        return False
    admin_email = os.getenv('SEED_ADMIN_EMAIL', 'admin@example.com').strip().lower()
    existing_admin = session.execute(select(User).where(User.email == admin_email)).scalar_one_or_none()
    if existing_admin:
        return False
    user = User(name='Administrator', email=admin_email)
    user.set_password(os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'))
    session.add(user)
    session.flush()
    session.add(UserGroup(user_id=user.id, group_id=admin_group.id))
    print(f"[INFO] Created initial admin user {admin_email} with temporary password.")
    return True


def summarize_groups(session):
    rows = []
    for group in session.execute(select(Group).order_by(Group.name)).scalars().all():
        slugs = session.execute(
            select(Permission.slug).join(GroupPermission, GroupPermission.permission_id == Permission.id)
            .where(GroupPermission.group_id == group.id).order_by(Permission.slug)
        ).scalars().all()
        rows.append((group.name, len(slugs), list(slugs)[:8]))
    return rows


def print_group_summary(session):
    rows = summarize_groups(session)
    if not rows:
        print("[INFO] No groups present.")
        return
    name_w = max(len(r[0]) for r in rows)
    print(f"{'Group'.ljust(name_w)} | Count | Sample (up to 8)")
    print('-' * (name_w + 40))
    for name, cnt, sample in rows:
        print(f"{name.ljust(name_w)} | {str(cnt).rjust(5)} | {', '.join(sample)}")


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Seed permission slugs, groups, statuses and the initial admin",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_authz.py\n  dry run: seed_authz.py --dry-run\n  show groups: seed_authz.py --show-groups\n""")
    )
    p.add_argument('--show-groups', action='store_true', help='Print group permission counts after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    return p.parse_args(argv)


def seed(session):
    """Run every ensure_* step; returns counts of created rows."""
    return {
        'statuses': ensure_statuses(session),
        'permissions': ensure_permissions(session),
        'groups': ensure_groups(session),
        'admin': int(ensure_initial_admin(session)),
    }


def main(argv=None):
    args = parse_args(argv)
    app = create_app()
    with app.app_context():
        session = get_db()
        engine = session.get_bind()
        if not inspect(engine).has_table('permissions'):
            # Bootstrap schema when migrations were not run yet; prefer `alembic upgrade head`
            Base.metadata.create_all(engine)
        try:
            counts = seed(session)
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) would create: {counts}")
            else:
                session.commit()
                print(f"[DONE] created: {counts}")
            if args.show_groups:
                print('\nGroup Permission Summary:')
                print_group_summary(session)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


if __name__ == '__main__':
    main()
