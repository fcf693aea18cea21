"""
Pytest configuration and shared fixtures for the governance core tests
"""
import pytest
import os
import sys
import tempfile
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment before importing app
os.environ['FLASK_ENV'] = 'testing'
os.environ['TESTING'] = 'true'


@pytest.fixture(scope='session')
def app():
    """Create and configure a test Flask application instance"""
    # The engine is bound when server.py runs db.init_app, so the temporary
    # database URL has to be in the environment before the first import.
    db_fd, db_path = tempfile.mkstemp(suffix='.db')
    os.environ['DATABASE_URL'] = f'sqlite:///{db_path}'

    from server import app as flask_app
    from models import db
    from rate_limiter import limiter

    flask_app.config.update({
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key',
    })

    # Disable rate limiting for tests (must be done after init_limiter ran)
    limiter.enabled = False

    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()

    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture(autouse=True)
def _clean_db(app):
    """Clean up data between tests to avoid UNIQUE constraint violations."""
    from models import db
    yield
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    # Row ids restart after the delete; stale identities must not linger.
    db.session.expunge_all()


@pytest.fixture(scope='function')
def client(app):
    """Create a test client for the Flask application"""
    return app.test_client()


@pytest.fixture
def roles(app):
    """Seed the default roles; returns {role_name: Role}"""
    from models import Role
    from core.permissions.roles import seed_default_roles

    seed_default_roles()
    return {r.role_name: r for r in Role.query.all()}


def _make_user(email, name, role):
    from models import User, db

    user = User(email=email, name=name, role_id=role.id if role else None,
                created_at=datetime.utcnow())
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def admin_user(app, roles):
    """Create an Admin user"""
    return _make_user('admin@example.com', 'Alex Admin', roles['Admin'])


@pytest.fixture
def staff_user(app, roles):
    """Create a Staff user"""
    return _make_user('staff@example.com', 'Sam Staff', roles['Staff'])


@pytest.fixture
def tenant_user(app, roles):
    """Create a Tenant user"""
    return _make_user('tenant@example.com', 'Terry Tenant', roles['Tenant'])


@pytest.fixture
def technician_user(app, roles):
    """Create a Technician user"""
    return _make_user('tech@example.com', 'Toni Tech', roles['Technician'])


@pytest.fixture
def roleless_user(app):
    """Create a user with no role assigned"""
    return _make_user('nobody@example.com', 'No Role', None)


@pytest.fixture
def lease(app, tenant_user):
    """Create an active lease ending in 90 days"""
    from models import Lease, db

    now = datetime.utcnow()
    lease = Lease(
        tenant_user_id=tenant_user.id,
        unit_number='A-12-3',
        start_date=now - timedelta(days=275),
        end_date=now + timedelta(days=90),
        monthly_rent=Decimal('1850.00'),
        status='Active',
    )
    db.session.add(lease)
    db.session.commit()
    return lease


@pytest.fixture
def invoice(app, lease):
    """Create a pending RM1850 invoice due 2030-05-01"""
    from models import Invoice, db

    invoice = Invoice(
        lease_id=lease.id,
        amount=Decimal('1850.00'),
        due_date=datetime(2030, 5, 1),
        status='Pending',
    )
    db.session.add(invoice)
    db.session.commit()
    return invoice


@pytest.fixture
def login(client):
    """Return a helper that puts a user's id in the client session"""
    def _login(user):
        with client.session_transaction() as sess:
            sess['user_id'] = user.id
        return client
    return _login


@pytest.fixture
def other_admin(app, roles):
    """Create a second Admin user for double-review tests"""
    return _make_user('admin2@example.com', 'Other Admin', roles['Admin'])
