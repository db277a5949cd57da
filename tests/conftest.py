from datetime import datetime

import pytest

from groundops_api import create_app
from groundops_api.extensions import db
from groundops_api.models.user import User
from groundops_api.services.clock import FixedClock


class TestConfig:
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    JWT_SECRET_KEY = "test-only-jwt-secret-0123456789abcdef"
    AUDIT_MODE = "inline"


@pytest.fixture(scope="function")
def clock():
    return FixedClock(datetime(2025, 3, 3, 8, 30))


@pytest.fixture(scope="function")
def app(clock):
    app = create_app(TestConfig, clock=clock)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope="function")
def client(app):
    return app.test_client()


@pytest.fixture(scope="function")
def ledger(app):
    return app.extensions["attendance_ledger"]


def make_user(username, role="user", is_active=True, password="secret123"):
    u = User(
        username=username,
        email=f"{username}@test.local",
        first_name=username.title(),
        last_name="Test",
        role=role,
        is_active=is_active,
    )
    u.set_password(password)
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def staff(app):
    return make_user("staff")


@pytest.fixture
def admin(app):
    return make_user("admin", role="admin")


@pytest.fixture
def government(app):
    return make_user("inspector", role="government")


@pytest.fixture
def new_user(app):
    return make_user
