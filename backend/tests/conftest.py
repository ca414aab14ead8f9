import os, sys, pytest
# Ensure backend directory is on path so 'maintdesk' and 'tests' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
import maintdesk
from maintdesk import create_app, get_db
from maintdesk.models.registry import load_all
from maintdesk.services import notifications

Base = load_all()


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({'DATABASE_URL': 'sqlite+pysqlite:///:memory:', 'TESTING': True, 'JWT_SECRET_KEY': 'test-secret'})
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app
    notifications.shutdown()


@pytest.fixture(autouse=True)
def clean_db(app_instance):
    yield
    notifications.drain(timeout=5)
    session = get_db()
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    maintdesk.SessionLocal.remove()


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance


@pytest.fixture()
def session(app_instance):
    return get_db()
