from datetime import datetime, timedelta, timezone

import pytest

from app import create_app, db
from app.models.user import ROLE_ADMIN, ROLE_USER
from app.services import match_service, user_service

PASSWORD = "Secret123"


@pytest.fixture(params=["sql", "memory"])
def app(request):
    """Application on a fresh in-memory store, once per storage backend"""
    app = create_app("testing", {"STORAGE_BACKEND": request.param})
    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def memory_app():
    return create_app("testing", {"STORAGE_BACKEND": "memory"})


@pytest.fixture
def ctx(app):
    """Pushed app context for calling services directly; not for HTTP tests"""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(username, role=ROLE_USER, full_name=None):
        with app.app_context():
            return user_service.create_user(
                username=username,
                password=PASSWORD,
                full_name=full_name or username.title(),
                role=role,
            )

    return _make_user


@pytest.fixture
def make_match(app):
    def _make_match(team1="CSK", team2="MI", venue="Chepauk", hours=48):
        match_date = datetime.now(timezone.utc) + timedelta(hours=hours)
        with app.app_context():
            return match_service.create_match(team1, team2, venue, match_date)

    return _make_match


@pytest.fixture
def login(app):
    """Return a test client logged in as ``username``"""

    def _login(username, password=PASSWORD):
        client = app.test_client()
        response = client.post(
            "/auth/login", json={"username": username, "password": password}
        )
        assert response.status_code == 200, response.get_json()
        return client

    return _login


@pytest.fixture
def admin(make_user):
    return make_user("admin", role=ROLE_ADMIN)
