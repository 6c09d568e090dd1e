"""
Shared fixtures.

Settings are cached on first import, so the environment has to point at
in-memory SQLite before anything from rolegate is imported.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

import rolegate.models  # noqa: F401
from rolegate.core.roles import AppRole
from rolegate.core.security import ActorClaims, create_access_token
from rolegate.database import Base, SessionLocal, engine
from rolegate.models import (
    Organization,
    OrgRoleCapability,
    Subscription,
    SubscriptionTier,
    User,
)
from rolegate.seed import seed_reference_data
from rolegate.services.sessions import open_session


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(schema):
    session = SessionLocal()
    seed_reference_data(session)
    yield session
    session.close()


@pytest.fixture
def make_org(db):
    def _make(slug, tier=None, status="active"):
        org = Organization(name=slug.title(), slug=slug, subdomain=slug)
        db.add(org)
        db.flush()
        if tier is not None:
            tier_row = db.scalars(select(SubscriptionTier).where(SubscriptionTier.name == tier)).one()
            db.add(Subscription(org_id=org.id, tier_id=tier_row.id, status=status))
        db.commit()
        return org
    return _make


@pytest.fixture
def make_user(db):
    def _make(org, role, email=None):
        user = User(
            org_id=org.id,
            email=email or f"{role.value}-{uuid.uuid4().hex[:8]}@example.com",
            role=role,
        )
        db.add(user)
        db.commit()
        return user
    return _make


@pytest.fixture
def login(db):
    """Open a session for a user and return (session, claims, token)."""
    def _login(user):
        session = open_session(db, user)
        claims = ActorClaims(
            user_id=user.id,
            email=user.email,
            org_id=user.org_id,
            role=user.role,
            session_id=session.id,
        )
        return session, claims, create_access_token(claims)
    return _login


@pytest.fixture
def business_org(make_org):
    return make_org("acme", tier="business")


@pytest.fixture
def free_org(make_org):
    return make_org("tinyco", tier="free")


@pytest.fixture
def owner(business_org, make_user):
    return make_user(business_org, AppRole.OWNER)


@pytest.fixture
def owner_claims(owner, login):
    _, claims, _ = login(owner)
    return claims


@pytest.fixture
def count_overrides(db):
    def _count(org_id=None):
        query = select(func.count()).select_from(OrgRoleCapability)
        if org_id is not None:
            query = query.where(OrgRoleCapability.org_id == org_id)
        return db.scalar(query)
    return _count


@pytest.fixture
def client():
    from rolegate.main import app
    return TestClient(app)


@pytest.fixture
def auth_headers():
    def _headers(org, token):
        return {"Authorization": f"Bearer {token}", "X-Tenant-Slug": org.slug}
    return _headers
