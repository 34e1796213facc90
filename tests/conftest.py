"""Shared fixtures: an app on in-memory SQLite, clients, and user factories."""
from types import SimpleNamespace

import pytest

from app import create_app
from extensions import db
from models import User
from utils.access_policy import grant_role

PASSWORD = "Str0ng!Passw0rd"


@pytest.fixture()
def app():
    app = create_app("testing")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def ctx(app):
    """Push an app context for service-level tests.

    Route tests must not use this: requests would reuse the pushed context and
    share Flask-Login's cached user across clients.
    """
    with app.app_context():
        yield app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user(app):
    counter = {"n": 0}

    def _make(role: str | None = "citizen", email: str | None = None, name: str | None = None):
        counter["n"] += 1
        email = email or f"user{counter['n']}@bengaluru.gov.in"
        with app.app_context():
            user = User(full_name=name or f"User {counter['n']}", email=email)
            user.set_password(PASSWORD)
            db.session.add(user)
            db.session.commit()
            if role:
                grant_role(user.id, role)
            return SimpleNamespace(id=user.id, email=email)

    return _make


@pytest.fixture()
def login_client(app):
    """Return a fresh test client already logged in as ``user``."""

    def _login(user):
        client = app.test_client()
        response = client.post("/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 200, response.get_json()
        return client

    return _login
