"""
Shared pytest fixtures for the Advisory Request Hub test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - transitions: default workflow rules seeded into status_transitions
    - factories: ORM helper factories (profiles, consultants, requests)
"""

import itertools

import pytest

from advisory_hub import create_app
from advisory_hub.models import db as _db
from advisory_hub.models.request import AdvisoryRequest, seed_default_status_transitions
from advisory_hub.models.team import TITLE_CONSULTANT, Consultant, UserProfile

SERVICE = "eng-excellence"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def transitions():
    """Seed the default workflow and return the number of rules added."""
    count = seed_default_status_transitions()
    _db.session.commit()
    return count


# ── ORM helper factories ─────────────────────────────────────────────────


class Factories:
    """DB-level builders that bypass the API to set arbitrary starting states."""

    def __init__(self):
        self._seq = itertools.count(1)

    def profile(self, user_id, role="Standard User"):
        p = UserProfile(user_id=user_id, username=user_id, email=f"{user_id}@example.com", role=role)
        _db.session.add(p)
        _db.session.commit()
        return p

    def consultant(self, name, *, title=TITLE_CONSULTANT, services=(SERVICE,), expertise=(),
                   rate=100.0, is_active=True, user_id=None, designation=None):
        c = Consultant(
            name=name,
            user_id=user_id,
            title=title,
            designation=designation,
            advisory_services=list(services),
            expertise=list(expertise),
            rate_per_hour=rate,
            is_active=is_active,
        )
        _db.session.add(c)
        _db.session.commit()
        return c

    def request(self, *, status="New", assignee=None, services=(SERVICE,), tools=(),
                selected_activities=None, billability=None, requestor_id="requestor-1", **fields):
        n = next(self._seq)
        req = AdvisoryRequest(
            request_id=f"EE-TEST{n:04d}",
            status=status,
            advisory_services=list(services),
            selected_tools=list(tools),
            requestor_id=requestor_id,
            assignee_id=assignee.id if assignee else None,
            current_assignee_name=assignee.name if assignee else None,
            original_assignee_id=assignee.id if assignee else None,
            original_assignee_name=assignee.name if assignee else None,
            selected_activities=selected_activities,
            billability_percentage=billability,
            **fields,
        )
        _db.session.add(req)
        _db.session.commit()
        return req


@pytest.fixture()
def factories():
    return Factories()
