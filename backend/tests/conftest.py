import os, sys, pytest
# Ensure backend directory is on path so 'bakery' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from bakery import create_app, get_db
from bakery.models import Base, ensure_statuses  # registers every table


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({'APP_ENV': 'test', 'PERMISSIONS_CACHE_TTL': 120})
    with app.app_context():
        session = get_db()
        Base.metadata.create_all(session.get_bind())
        ensure_statuses(session)
        session.commit()
    yield app


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def permission_cache(app_instance):
    return app_instance.extensions['permission_cache']


@pytest.fixture(autouse=True)
def _fresh_permission_cache(app_instance):
    # grants differ per test; never let one test see another's cached set
    app_instance.extensions['permission_cache'].flush_all()
    yield
