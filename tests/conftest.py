"""
Shared fixtures: a testing app on a throwaway SQLite file, its credential
services, and a couple of provisioned users.
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from api import create_app
from models.audit_log import AuditLog

EMPLOYEE_PASSWORD = "correct-horse-battery"
ADMIN_PASSWORD = "admin-staple-battery"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 10, 17, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def app(tmp_path):
    app = create_app("testing", {"DATABASE_URL": f"sqlite:///{tmp_path / 'auth.db'}"})
    yield app
    app.extensions["credentials"].storage.dispose()


@pytest.fixture
def services(app):
    return app.extensions["credentials"]


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def employee(services):
    return services.directory.add_user(
        "ayse@example.com", EMPLOYEE_PASSWORD, role="employee", department_id=3, user_id=42
    )


@pytest.fixture
def admin(services):
    return services.directory.add_user("admin@example.com", ADMIN_PASSWORD, role="admin", user_id=1)


@pytest.fixture
def audit_entries(services):
    def _entries():
        with services.storage.unit_of_work() as session:
            return session.scalars(select(AuditLog).order_by(AuditLog.id)).all()
    return _entries
