"""
Pytest fixtures for disktrack backend tests.

Provides test database setup, an admin account, factories for units and
bill uploads, and the test client.
"""

import io
from datetime import datetime

import pytest

from disktrack import create_app
from disktrack.config import Config
from disktrack.extensions import db
from disktrack.models import Unit
from disktrack.services.auth_service import create_admin

ADMIN_EMAIL = "admin@disktrack.local"
ADMIN_PASSWORD = "Password123!"

FIXED_NOW = datetime(2026, 3, 15, 10, 0, 0)


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""

    class TestConfig(Config):
        TESTING = True
        SECRET_KEY = "test"
        SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
        RATE_LIMIT_BACKEND = "memory"
        UPLOAD_FOLDER = str(tmp_path_factory.mktemp("uploads"))
        LOG_LEVEL = "WARNING"

    app = create_app(TestConfig)

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

        # Fresh rate limit counters
        app.extensions.pop("rate_limiter", None)

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def admin(db_session):
    return create_admin(ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, ADMIN_EMAIL, ADMIN_PASSWORD))


@pytest.fixture(scope='function')
def make_unit(db_session):
    """Factory for active units; extra keyword arguments override columns."""

    def _make(serial_number: str, **fields) -> Unit:
        values = {
            "name": f"Disk {serial_number}",
            "product_type": "Disk",
            "type_capacity": "512",
            "warranty_registered": False,
        }
        values.update(fields)
        unit = Unit(serial_number=serial_number, **values)
        db_session.add(unit)
        db_session.commit()
        return unit

    return _make


def bill_upload(name: str = "bill.pdf", content: bytes = b"%PDF-1.4 test bill"):
    """(fileobj, filename) tuple as accepted by the Flask test client."""
    return io.BytesIO(content), name


def registration_form(serial: str = "SN-100", **overrides) -> dict:
    form = {
        "serialNumber": serial,
        "platform": "amazon",
        "buyerName": "Jane",
        "buyerEmail": "jane@x.com",
        "buyerPhone": "555-0100",
    }
    form.update(overrides)
    return form


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
