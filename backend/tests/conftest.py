import os, sys, pytest
from datetime import date
# Ensure backend directory is on path so 'siteledger' and 'tests' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from siteledger import create_app, get_db
from siteledger.models import Base, Company, Project
from siteledger.services.engine import LedgerEngine, build_db_engine, make_session_factory

FIXED_TODAY = date(2024, 6, 15)


@pytest.fixture(scope='session', autouse=True)
def app_instance(tmp_path_factory):
    # File-backed SQLite: project lookups run on worker threads and need their own connections
    db_path = tmp_path_factory.mktemp('db') / 'api.db'
    app = create_app({
        'DATABASE_URL': f'sqlite:///{db_path}',
        'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256',
        'AUTO_APPROVE_ROLES': ['admin'],
        'AUTO_APPROVE_PAYMENTS': False,
    })
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def session_factory(tmp_path):
    engine = build_db_engine(f"sqlite:///{tmp_path / 'ledger.db'}", busy_timeout=2.0)
    Base.metadata.create_all(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def projects(session_factory):
    """Two projects (P, Q) under company A and one (R) under company B."""
    with session_factory() as session:
        a = Company(name='Company A')
        b = Company(name='Company B')
        session.add_all([a, b])
        session.flush()
        p = Project(name='P', company_id=a.id, budget_cents=1_000_000)
        q = Project(name='Q', company_id=a.id)
        r = Project(name='R', company_id=b.id)
        session.add_all([p, q, r])
        session.commit()
        return {
            'P': p.id, 'Q': q.id, 'R': r.id,
            'A': a.id, 'B': b.id,
        }


@pytest.fixture()
def ledger_engine(session_factory, projects):
    return LedgerEngine.build(session_factory, lookup_timeout=2.0, lock_timeout=2.0, today=lambda: FIXED_TODAY)
