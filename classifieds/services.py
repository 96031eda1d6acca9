# classifieds/services.py
"""Owner-side listing operations and privilege-tier limits."""
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from . import crud
from .auth import UserPrincipal
from .config import PREMIUM_DAILY_POSTS, PREMIUM_MAX_IMAGES, STANDARD_DAILY_POSTS, STANDARD_MAX_IMAGES
from .exceptions import AuthorizationError, LimitExceededError, NotFoundError, PreconditionError
from .models import AppRole, Category, Listing, ListingStatus, UserRole
from .storage import ObjectStore, purge_images
from .utils import as_utc, logger, utc_now

EDITABLE_STATUSES = (ListingStatus.PENDING.value, ListingStatus.REJECTED.value)

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.I)
_TAG_RE = re.compile(r"<[^>]*>")
_HANDLER_RE = re.compile(r"on\w+\s*=", re.I)


def sanitize_text(value: Optional[str], max_length: int) -> Optional[str]:
    if value is None:
        return None
    cleaned = _SCRIPT_RE.sub("", value)
    cleaned = _TAG_RE.sub("", cleaned)
    cleaned = re.sub(r"javascript:", "", cleaned, flags=re.I)
    cleaned = _HANDLER_RE.sub("", cleaned).strip()
    return cleaned[:max_length] or None


def has_premium_privileges(role: Optional[UserRole], now: datetime) -> bool:
    """Premium privileges are checked live: a lapsed premium_until counts as standard."""
    if role is None:
        return False
    if role.role == AppRole.ADMIN.value:
        return True
    if role.role != AppRole.PREMIUM.value:
        return False
    until = as_utc(role.premium_until)
    return until is not None and until > now


def tier_limits(role: Optional[UserRole], now: datetime) -> Dict[str, int]:
    if has_premium_privileges(role, now):
        return {"max_images": PREMIUM_MAX_IMAGES, "daily_posts": PREMIUM_DAILY_POSTS}
    return {"max_images": STANDARD_MAX_IMAGES, "daily_posts": STANDARD_DAILY_POSTS}


def _clean_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(data)
    if "title" in out:
        title = sanitize_text(out["title"], 200)
        if not title or len(title) < 3:
            raise ValueError("Title must be at least 3 characters long")
        out["title"] = title
    if "description" in out:
        out["description"] = sanitize_text(out["description"], 5000)
    if "location" in out:
        out["location"] = sanitize_text(out["location"], 100)
    if "price" in out and (out["price"] is None or out["price"] < 0):
        raise ValueError("Price must be a non-negative integer")
    return out


def _require_category(db: Session, category_id: int) -> Category:
    category = db.get(Category, category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} not found")
    return category


def create_listing(db: Session, owner: UserPrincipal, payload: Dict[str, Any], now: datetime = None) -> Listing:
    now = now or utc_now()
    data = _clean_fields(payload)
    images = list(data.pop("images", None) or [])
    limits = tier_limits(crud.get_role(db, owner.user_id), now)
    if len(images) > limits["max_images"]:
        raise LimitExceededError(f"At most {limits['max_images']} images allowed")
    posted_today = crud.count_recent_listings(db, owner.user_id, now - timedelta(days=1))
    if posted_today >= limits["daily_posts"]:
        raise LimitExceededError(f"At most {limits['daily_posts']} listings per day allowed")
    _require_category(db, data["category_id"])

    listing = Listing(
        user_id=owner.user_id,
        images=images,
        status=ListingStatus.PENDING.value,
        is_premium=False,
        views_count=0,
        created_at=now,
        updated_at=now,
        **data,
    )
    db.add(listing)
    db.flush()
    crud.adjust_category_count(db, listing.category_id, 1)
    crud.commit(db, "listing creation")
    db.refresh(listing)
    logger.info("User %s created listing %s", owner.user_id, listing.id)
    return listing


def _owned_listing(db: Session, owner: UserPrincipal, listing_id: int) -> Listing:
    listing = crud.get_listing_or_404(db, listing_id)
    if listing.user_id != owner.user_id:
        raise AuthorizationError("Forbidden")
    return listing


def resubmit_listing(db: Session, owner: UserPrincipal, listing_id: int, updates: Dict[str, Any]) -> Listing:
    """Owner edit: allowed on pending/rejected listings, always sends them back to review."""
    listing = _owned_listing(db, owner, listing_id)
    if listing.status not in EDITABLE_STATUSES:
        raise PreconditionError(f"Listings in status '{listing.status}' cannot be edited")
    values = _clean_fields({k: v for k, v in updates.items() if k != "images"})
    old_category = listing.category_id
    new_category = values.get("category_id", old_category)
    if new_category != old_category:
        _require_category(db, new_category)
    values.update(status=ListingStatus.PENDING.value, rejected_reason=None, expires_at=None)
    if not crud.transition_listing(db, listing_id, EDITABLE_STATUSES, values):
        db.rollback()
        raise PreconditionError(f"Listing {listing_id} changed state; reload and retry")
    if new_category != old_category:
        crud.adjust_category_count(db, old_category, -1)
        crud.adjust_category_count(db, new_category, 1)
    crud.commit(db, f"edit of listing {listing_id}")
    listing = crud.get_listing(db, listing_id)
    db.refresh(listing)
    logger.info("User %s resubmitted listing %s for review", owner.user_id, listing_id)
    return listing


def delete_own_listing(db: Session, owner: UserPrincipal, listing_id: int, object_store: ObjectStore) -> Dict[str, int]:
    listing = _owned_listing(db, owner, listing_id)
    category_id, images = listing.category_id, list(listing.images or [])
    if not crud.delete_listing_row(db, listing_id, category_id):
        raise NotFoundError(f"Listing {listing_id} not found")
    crud.commit(db, f"deletion of listing {listing_id}")
    deleted, failed = purge_images(object_store, images)
    logger.info("User %s deleted listing %s (%d images removed, %d failed)", owner.user_id, listing_id, deleted, failed)
    return {"images_deleted": deleted, "image_failures": failed}


def view_listing(db: Session, listing_id: int, now: datetime = None) -> Listing:
    """Public detail view: only active, unexpired listings; counts the view."""
    now = now or utc_now()
    listing = crud.get_listing(db, listing_id)
    if (
        listing is None
        or listing.status != ListingStatus.ACTIVE.value
        or listing.expires_at is None
        or as_utc(listing.expires_at) <= now
    ):
        raise NotFoundError(f"Listing {listing_id} not found")
    crud.increment_views(db, listing_id)
    crud.commit(db, f"view of listing {listing_id}")
    db.refresh(listing)
    return listing
