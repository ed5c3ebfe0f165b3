from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ.pop("NOTIFICATIONS_PUSH_PROVIDER", None)

from compliancedb.database import Base  # noqa: E402
from compliancedb.apps.accounts import models as account_models  # noqa: E402
from compliancedb.apps.compliance import models as compliance_models  # noqa: E402
from compliancedb.apps.audit import models as audit_models  # noqa: E402
from compliancedb.apps.notifications import models as notification_models  # noqa: E402
from compliancedb.apps.compliance.enums import PractitionerRole  # noqa: E402


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(
        bind=engine,
        tables=[
            account_models.User.__table__,
            compliance_models.UserComplianceRecord.__table__,
            compliance_models.TierAssignment.__table__,
            compliance_models.SideEffectJob.__table__,
            audit_models.ComplianceAuditLog.__table__,
            notification_models.Notification.__table__,
        ],
    )
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_user(db_session):
    counter = {"n": 0}

    def _make(role=PractitionerRole.IT, *, is_admin: bool = False, **fields) -> account_models.User:
        counter["n"] += 1
        user = account_models.User(
            email=f"user{counter['n']}@example.com",
            full_name=f"Practitioner {counter['n']}",
            role=role,
            is_active=True,
            is_admin=is_admin,
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def provisioned_user(db_session, make_user):
    """User initialized at their role's default tier, notifications/audit included."""
    from compliancedb.apps.compliance import services

    def _provision(role=PractitionerRole.IT, **fields) -> account_models.User:
        user = make_user(role, **fields)
        result = services.initialize_user(db_session, user_id=user.id)
        assert result.success, result
        return user

    return _provision
