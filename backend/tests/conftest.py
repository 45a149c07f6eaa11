"""
Pytest fixtures for cartcode backend tests.

Provides test database setup, catalog/user fixtures, and test client.
"""

import pytest
from cartcode import create_app
from cartcode.extensions import db
from cartcode.models import Store, User, Product
from cartcode.services import session_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STAFF_CODE_SECRET': 'test-staff-code-secret',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
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
def organizer(db_session):
    """Organizer who owns store."""
    user = User(name="Olga Organizer", role="organizer")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def store(db_session, organizer):
    """Store owned by organizer."""
    store = Store(name="Corner Shop", slug="corner", organizer_id=organizer.id)
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def other_store(db_session):
    """Store with no organizer."""
    store = Store(name="Other Shop", slug="other")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def admin_user(db_session):
    user = User(name="Ada Admin", role="admin")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def staff_user(db_session, store):
    user = User(name="Sam Staff", role="staff", store_id=store.id)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def product(db_session, store):
    """Base 100 with tiers 10 -> 90 and 50 -> 80 (stored out of order)."""
    product = Product(
        store_id=store.id,
        name="Blue Pen",
        price_cents=100,
        wholesale_tiers=[
            {"min_qty": 50, "price_cents": 80},
            {"min_qty": 10, "price_cents": 90, "label": "Box of 10"},
        ],
        stock=100,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def sized_product(db_session, store):
    """Base 100; size L overrides to 150; tier 5 -> 140 applies to L only."""
    product = Product(
        store_id=store.id,
        name="T-Shirt",
        price_cents=100,
        wholesale_tiers=[{"min_qty": 5, "price_cents": 140}],
        sizes=[
            {"size": "M", "stock": 10},
            {"size": "L", "price_cents": 150, "stock": 10},
        ],
        stock=50,
    )
    db_session.add(product)
    db_session.commit()
    return product


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user) -> dict:
    """Register a bearer token for user and return Authorization headers."""
    _, token = session_service.create_session(user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def organizer_headers(organizer):
    return headers_for(organizer)


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return headers_for(admin_user)


@pytest.fixture(scope='function')
def staff_headers(staff_user):
    return headers_for(staff_user)
