"""
Pytest fixtures for shopguard backend tests.

Provides test database setup, principals for every role, shops, session
tokens and the test client.
"""

import pytest
from shopguard import create_app
from shopguard.extensions import db, rate_limiter
from shopguard.models import AuditLogEntry, Shop, User
from shopguard.services import audit_service
from shopguard.services.session_service import create_session


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RATE_LIMIT_ENABLED': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database, rate windows and audit counter for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        rate_limiter.clear()
        audit_service.reset_failure_count()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_user(db_session, user_id, username, *, multi_shop_admin=False, superadmin=False, active=True):
    user = User(
        id=user_id,
        username=username,
        email=f"{username}@example.com",
        is_active=active,
        is_multi_shop_admin=multi_shop_admin,
        is_superadmin=superadmin,
    )
    db_session.add(user)
    db_session.commit()
    return user


def make_shop(db_session, shop_id, name, owner):
    shop = Shop(id=shop_id, name=name, owner_id=owner.id, is_active=True)
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def owner(db_session):
    """Shop owner 10."""
    return make_user(db_session, 10, "owner_ten")


@pytest.fixture(scope='function')
def other_owner(db_session):
    """Owner 20 of an unrelated shop."""
    return make_user(db_session, 20, "owner_twenty")


@pytest.fixture(scope='function')
def admin(db_session):
    """Multi-shop admin 77."""
    return make_user(db_session, 77, "admin_seventy_seven", multi_shop_admin=True)


@pytest.fixture(scope='function')
def superadmin(db_session):
    return make_user(db_session, 1, "platform_root", superadmin=True)


@pytest.fixture(scope='function')
def outsider(db_session):
    """User 99: owns nothing, no roles."""
    return make_user(db_session, 99, "outsider")


@pytest.fixture(scope='function')
def shop(db_session, owner):
    """Shop 5, owned by 10."""
    return make_shop(db_session, 5, "Main Street Repairs", owner)


@pytest.fixture(scope='function')
def second_shop(db_session, owner):
    """Shop 6, also owned by 10."""
    return make_shop(db_session, 6, "Harbor Repairs", owner)


@pytest.fixture(scope='function')
def foreign_shop(db_session, other_owner):
    """Shop 7, owned by 20."""
    return make_shop(db_session, 7, "Hilltop Repairs", other_owner)


@pytest.fixture(scope='function')
def admin_session(db_session, admin):
    """(SessionToken, plaintext token) for admin 77."""
    return create_session(admin.id, user_agent="pytest", ip_address="127.0.0.1")


@pytest.fixture(scope='function')
def owner_session(db_session, owner):
    return create_session(owner.id, user_agent="pytest", ip_address="127.0.0.1")


def audit_actions(db_session, user_id=None):
    """Actions in insertion order, optionally for one actor."""
    query = db_session.query(AuditLogEntry)
    if user_id is not None:
        query = query.filter_by(user_id=user_id)
    return [entry.action for entry in query.order_by(AuditLogEntry.id).all()]


def last_audit(db_session, action=None):
    query = db_session.query(AuditLogEntry)
    if action is not None:
        query = query.filter_by(action=action)
    return query.order_by(AuditLogEntry.id.desc()).first()


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
