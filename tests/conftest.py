"""
Shared pytest fixtures for the Gemba Issue Tracker test suite.

Provides:
    - app: Flask application (session-scoped, in-memory SQLite)
    - session: Per-test table create/drop inside an app context (autouse)
    - client: Flask test client (function-scoped)
    - auth_headers: factory for Bearer headers at a given role
    - operator/lead/manager/admin headers
    - category, area: reference rows
    - make_issue: create an issue through the lifecycle service
"""

import pytest

from gemba import create_app
from gemba.models import db as _db
from gemba.models.reference import ROLE_LEVELS, Area, IssueCategory, User
from gemba.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(autouse=True)
def session(app):
    """Per-test: open app context on fresh tables, drop them afterwards."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Auth helpers ─────────────────────────────────────────────────────────


@pytest.fixture()
def auth_headers():
    """Factory: ``auth_headers("manager")`` → {"Authorization": "Bearer ..."}."""
    def _make(role="operator", user_id=None, **kwargs):
        token = generate_access_token(
            user_id or f"user-{role}",
            ROLE_LEVELS[role],
            username=role,
            role=role,
            **kwargs,
        )
        return {"Authorization": f"Bearer {token}"}
    return _make


@pytest.fixture()
def operator_headers(auth_headers):
    return auth_headers("operator")


@pytest.fixture()
def lead_headers(auth_headers):
    return auth_headers("team_lead")


@pytest.fixture()
def manager_headers(auth_headers):
    return auth_headers("manager")


@pytest.fixture()
def admin_headers(auth_headers):
    return auth_headers("admin")


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def category():
    row = IssueCategory(name="Equipment")
    _db.session.add(row)
    _db.session.commit()
    return row


@pytest.fixture()
def area():
    row = Area(name="Assembly")
    _db.session.add(row)
    _db.session.commit()
    return row


@pytest.fixture()
def lead_user():
    """A persisted team lead, so history can show a display name."""
    user = User(id="user-team_lead", username="jdoe", display_name="J. Doe",
                role="team_lead", role_level=2)
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture()
def make_issue():
    """Factory: create an issue via the lifecycle service, return the Issue."""
    from gemba.services.issue_lifecycle import create_issue

    def _make(title="Conveyor stopped", user_id="user-operator", **data):
        issue, _suggestion = create_issue({"title": title, **data}, user_id)
        return issue
    return _make
