# tests/test_crud.py
from datetime import timedelta

from classifieds import crud
from classifieds.models import Category, ListingStatus

from conftest import NOW, make_listing, make_user


def test_public_listings_only_active_and_unexpired(db, category):
    live = make_listing(db, category, status=ListingStatus.ACTIVE, expires_at=NOW + timedelta(days=1), price=50)
    premium = make_listing(db, category, status=ListingStatus.ACTIVE, expires_at=NOW + timedelta(days=1),
                           price=500, is_premium=True)
    make_listing(db, category, status=ListingStatus.ACTIVE, expires_at=NOW - timedelta(minutes=1))
    make_listing(db, category)

    res = crud.list_public_listings(db, NOW)
    assert res["total"] == 2
    # premium listings first
    assert [obj.id for obj in res["items"]] == [premium.id, live.id]

    res = crud.list_public_listings(db, NOW, filters={"max_price": 100})
    assert [obj.id for obj in res["items"]] == [live.id]


def test_listings_with_owners_batches_profiles(db, category):
    make_user(db, "owner-1", display_name="First")
    make_listing(db, category, user_id="owner-1")
    make_listing(db, category, user_id="owner-1")
    make_listing(db, category, user_id="no-profile")

    rows = crud.list_listings_with_owners(db)
    assert len(rows) == 3
    owners = {row["listing"].user_id: row["owner"] for row in rows}
    assert owners["owner-1"].display_name == "First"
    assert owners["no-profile"] is None
    assert all(row["category_name"] == "Electronics" for row in rows)


def test_count_listings_by_status_includes_empty_statuses(db, category):
    make_listing(db, category)
    counts = crud.count_listings_by_status(db)
    assert counts == {"pending": 1, "active": 0, "rejected": 0, "expired": 0}


def test_category_counter_never_negative(db, category):
    crud.adjust_category_count(db, category.id, -1)
    db.commit()
    db.expire_all()
    assert db.get(Category, category.id).listing_count == 0


def test_guarded_transition_requires_expected_status(db, category):
    listing = make_listing(db, category, status=ListingStatus.REJECTED, rejected_reason="x")
    assert not crud.transition_listing(db, listing.id, [ListingStatus.PENDING.value],
                                       {"status": ListingStatus.ACTIVE.value})
    assert crud.transition_listing(db, listing.id, [ListingStatus.REJECTED.value],
                                   {"status": ListingStatus.PENDING.value, "rejected_reason": None})
    db.commit()
    db.expire_all()
    assert crud.get_listing(db, listing.id).status == ListingStatus.PENDING.value
