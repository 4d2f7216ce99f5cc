"""
Pytest fixtures for PalletTrack backend tests.

Provides an in-memory application, a per-test cleaned database, user and
floor-plan factories, and bearer-token headers.
"""

import pytest
from palletrack import create_app
from palletrack.extensions import db
from palletrack.models import User, StorageLocation, ProductVariant
from palletrack.services import auth_service, session_service


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'CAPACITY_ROLLUP_POLICY': 'unbounded',
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: make_user(name, pin, is_admin=False) -> User."""
    def _make(name: str = "Staff", pin: str = "1111", is_admin: bool = False) -> User:
        return auth_service.create_user(name, pin, is_admin=is_admin)
    return _make


@pytest.fixture(scope='function')
def user(make_user):
    """Regular staff user (PIN 1111)."""
    return make_user("Lagerist", "1111")


@pytest.fixture(scope='function')
def admin(make_user):
    """Admin user (PIN 9999)."""
    return make_user("Leitung", "9999", is_admin=True)


@pytest.fixture(scope='function')
def make_location(db_session):
    """Factory inserting a location row directly (bypasses tree checks)."""
    def _make(name: str, parent=None, capacity=None, **kwargs) -> StorageLocation:
        loc = StorageLocation(
            name=name,
            parent_id=parent.id if parent is not None else None,
            capacity=capacity,
            is_active=True,
            **kwargs,
        )
        db_session.add(loc)
        db_session.commit()
        return loc
    return _make


@pytest.fixture(scope='function')
def make_product(db_session):
    def _make(name: str, code: str | None = None, category: str = "finished") -> ProductVariant:
        product = ProductVariant(name=name, code=code, category=category, is_active=True)
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def warehouse(make_location, make_product):
    """
    Root A with leaves A1 (capacity 100) and A2 (capacity 50), a second root
    B without children, and two products.
    """
    root = make_location("A")
    a1 = make_location("A1", parent=root, capacity=100)
    a2 = make_location("A2", parent=root, capacity=50)
    b = make_location("B")
    p1 = make_product("Feuermaxx 3kg", code="FM3")
    p2 = make_product("Landi 2kg", code="L2")
    return {"root": root, "a1": a1, "a2": a2, "b": b, "p1": p1, "p2": p2}


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def user_headers(user):
    _, token = session_service.create_session(user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin):
    _, token = session_service.create_session(admin.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def headers_for(db_session):
    """Factory: headers_for(user) -> Authorization headers for a fresh session."""
    def _headers(u: User) -> dict:
        _, token = session_service.create_session(u.id)
        return auth_headers(token)
    return _headers
