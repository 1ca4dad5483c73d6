"""
Pytest fixtures for the cash register backend tests.

Provides an in-memory database per test, two independent stores with one
user each, and bearer-token headers for the API tests.
"""

import pytest
from cashdesk import create_app
from cashdesk.extensions import db
from cashdesk.services import register_service, session_service, store_service


@pytest.fixture(scope='function')
def app():
    """Create application with a fresh in-memory schema."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DB_RETRY_ATTEMPTS': 1,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    yield db.session
    db.session.rollback()


@pytest.fixture(scope='function')
def store_a(db_session):
    """Store 1."""
    return store_service.create_store("Downtown Phones", "DT")


@pytest.fixture(scope='function')
def store_b(db_session):
    """Store 2, independent of store 1."""
    return store_service.create_store("Mall Kiosk", "MK")


@pytest.fixture(scope='function')
def user_a(db_session, store_a):
    return store_service.create_user(store_a.id, "cashier_a", "Cashier A")


@pytest.fixture(scope='function')
def user_b(db_session, store_b):
    return store_service.create_user(store_b.id, "cashier_b", "Cashier B")


@pytest.fixture(scope='function')
def open_session_a(store_a, user_a):
    """Store 1 register opened with 1000.00."""
    return register_service.open_register(store_a.id, user_a.id, 100000)


@pytest.fixture(scope='function')
def headers_a(user_a):
    _, token = session_service.create_session(user_a.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def headers_b(user_b):
    _, token = session_service.create_session(user_b.id)
    return auth_headers(token)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
