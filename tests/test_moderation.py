# tests/test_moderation.py
from datetime import timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from classifieds.auth import AdminPrincipal, UserPrincipal
from classifieds.config import DEFAULT_REJECT_REASON
from classifieds.exceptions import AuthorizationError, NotFoundError, PersistenceError, PreconditionError
from classifieds.models import AppRole, Listing, ListingStatus
from classifieds.moderation import ModerationEngine
from classifieds import crud
from classifieds.utils import as_utc

from conftest import NOW, fixed_clock, make_listing, make_user


@pytest.fixture
def engine_(db):
    return ModerationEngine(db, AdminPrincipal("admin-1"), clock=fixed_clock())


def test_requires_admin_principal(db):
    with pytest.raises(AuthorizationError):
        ModerationEngine(db, UserPrincipal("owner-1"))


def test_approve_sets_active_and_expiry(db, category, engine_):
    listing = make_listing(db, category)
    result = engine_.approve(listing.id, make_premium=True, validity_days=5)
    assert result.status == ListingStatus.ACTIVE.value
    assert result.is_premium is True
    assert result.rejected_reason is None
    assert abs((as_utc(result.expires_at) - (NOW + timedelta(days=5))).total_seconds()) < 1


def test_approve_non_pending_is_refused(db, category, engine_):
    listing = make_listing(db, category, status=ListingStatus.REJECTED, rejected_reason="blurry")
    with pytest.raises(PreconditionError):
        engine_.approve(listing.id, validity_days=5)
    db.expire_all()
    assert crud.get_listing(db, listing.id).status == ListingStatus.REJECTED.value


def test_approve_unknown_listing(engine_):
    with pytest.raises(NotFoundError):
        engine_.approve(9999, validity_days=5)


def test_approve_rejects_non_positive_days(db, category, engine_):
    listing = make_listing(db, category)
    with pytest.raises(ValueError):
        engine_.approve(listing.id, validity_days=0)


def test_reject_without_reason_uses_default(db, category, engine_):
    listing = make_listing(db, category)
    result = engine_.reject(listing.id)
    assert result.status == ListingStatus.REJECTED.value
    assert result.rejected_reason == DEFAULT_REJECT_REASON
    assert result.expires_at is None


def test_reject_with_reason(db, category, engine_):
    listing = make_listing(db, category)
    result = engine_.reject(listing.id, "  duplicate post  ")
    assert result.rejected_reason == "duplicate post"


def test_reject_active_listing_is_refused(db, category, engine_):
    listing = make_listing(db, category, status=ListingStatus.ACTIVE, expires_at=NOW + timedelta(days=3))
    with pytest.raises(PreconditionError):
        engine_.reject(listing.id, "late")


def test_extend_long_expired_counts_from_now(db, category, engine_):
    listing = make_listing(db, category, status=ListingStatus.EXPIRED, expires_at=NOW - timedelta(days=10))
    result = engine_.extend(listing.id, 5)
    assert as_utc(result.expires_at) == NOW + timedelta(days=5)
    assert result.status == ListingStatus.ACTIVE.value


def test_extend_active_counts_from_current_expiry(db, category, engine_):
    listing = make_listing(db, category, status=ListingStatus.ACTIVE, expires_at=NOW + timedelta(days=2))
    result = engine_.extend(listing.id, 5)
    assert as_utc(result.expires_at) == NOW + timedelta(days=7)


def test_extend_pending_is_refused(db, category, engine_):
    listing = make_listing(db, category)
    with pytest.raises(PreconditionError):
        engine_.extend(listing.id, 5)


def test_failed_commit_leaves_prior_state(db, category, engine_, monkeypatch):
    listing = make_listing(db, category)
    listing_id = listing.id
    real_commit = db.commit

    def broken_commit():
        raise SQLAlchemyError("database unavailable")

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(PersistenceError):
        engine_.approve(listing_id, validity_days=5)
    monkeypatch.setattr(db, "commit", real_commit)

    db.expire_all()
    stored = db.get(Listing, listing_id)
    assert stored.status == ListingStatus.PENDING.value
    assert stored.expires_at is None


def test_set_premium_creates_role(db, engine_):
    role = engine_.set_premium("owner-9", 30)
    assert role.role == AppRole.PREMIUM.value
    assert as_utc(role.premium_until) == NOW + timedelta(days=30)


def test_set_and_remove_premium(db, engine_):
    make_user(db, "owner-1")
    engine_.set_premium("owner-1", 10)
    role = engine_.remove_premium("owner-1")
    assert role.role == AppRole.USER.value
    assert role.premium_until is None


def test_premium_does_not_downgrade_admin(db, engine_):
    make_user(db, "admin-2", role=AppRole.ADMIN)
    with pytest.raises(PreconditionError):
        engine_.set_premium("admin-2", 10)
    with pytest.raises(PreconditionError):
        engine_.remove_premium("admin-2")


def test_rejected_reason_only_on_rejected(db, category, engine_):
    a = make_listing(db, category)
    b = make_listing(db, category)
    engine_.approve(a.id, validity_days=3)
    engine_.reject(b.id, "spam")
    db.expire_all()
    for listing in db.query(Listing).all():
        assert (listing.status == ListingStatus.REJECTED.value) == (listing.rejected_reason is not None)
        assert (listing.status == ListingStatus.ACTIVE.value) == (listing.expires_at is not None)
