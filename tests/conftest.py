# tests/conftest.py
import os

os.environ.setdefault("ENABLE_SCHEDULER", "0")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from classifieds.db import Base, get_db
from classifieds.models import AppRole, Category, Listing, ListingStatus, Profile, UserRole, UserStatus

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)
IMAGE_BASE = "https://cdn.example.com/storage/v1/object/public/listings"


def fixed_clock(value=NOW):
    return lambda: value


class FakeObjectStore:
    bucket = "listings"

    def __init__(self, fail_on=(), absent=()):
        self.fail_on = set(fail_on)
        self.absent = set(absent)
        self.attempted = []

    def delete(self, object_path):
        self.attempted.append(object_path)
        if object_path in self.fail_on:
            raise RuntimeError(f"cannot delete {object_path}")
        return object_path not in self.absent


class FakeVerifier:
    def __init__(self, tokens=None):
        self.tokens = dict(tokens or {})

    def verify(self, token):
        return self.tokens.get(token)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def category(db):
    cat = Category(name="Electronics", slug="electronics", icon="cpu", listing_count=0)
    db.add(cat)
    db.commit()
    return cat


def make_user(db, user_id, role=AppRole.USER, premium_until=None, status=UserStatus.ACTIVE, display_name=None):
    db.add(Profile(user_id=user_id, display_name=display_name or user_id, status=status.value))
    db.add(UserRole(user_id=user_id, role=role.value, premium_until=premium_until))
    db.commit()


def make_listing(db, category, status=ListingStatus.PENDING, user_id="owner-1", images=None, **kw):
    listing = Listing(
        user_id=user_id,
        category_id=category.id,
        title=kw.pop("title", "Used bicycle"),
        price=kw.pop("price", 100),
        images=images or [],
        status=status.value,
        created_at=kw.pop("created_at", NOW - timedelta(days=2)),
        **kw,
    )
    db.add(listing)
    category.listing_count = (category.listing_count or 0) + 1
    db.commit()
    return listing


def image_urls(*names):
    return [f"{IMAGE_BASE}/owner-1/{n}" for n in names]


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def verifier():
    return FakeVerifier({"admin-token": "admin-1", "user-token": "owner-1", "other-token": "owner-2"})


@pytest.fixture
def client(session_factory, verifier, object_store):
    from classifieds.api.routes import get_identity_verifier, get_object_store
    from classifieds.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_verifier] = lambda: verifier
    app.dependency_overrides[get_object_store] = lambda: object_store
    yield TestClient(app)
    app.dependency_overrides.clear()
