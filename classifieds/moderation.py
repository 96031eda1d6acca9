# classifieds/moderation.py
"""Admin-driven listing transitions and premium role grants.

    pending --approve--> active --(reclaimer)--> expired --(reclaimer)--> deleted
    pending --reject---> rejected
    active/expired --extend--> active

Each transition is a single UPDATE guarded on the expected current status,
committed once; if it cannot be applied nothing changes.
"""
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from . import crud
from .auth import AdminPrincipal
from .config import DEFAULT_EXTEND_DAYS, DEFAULT_PREMIUM_DAYS, DEFAULT_REJECT_REASON, DEFAULT_VALIDITY_DAYS
from .exceptions import AuthorizationError, NotFoundError, PreconditionError
from .models import AppRole, Listing, ListingStatus, UserRole
from .utils import as_utc, logger, utc_now


def _positive_days(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{name} must be a positive integer")
    return value


class ModerationEngine:
    def __init__(self, db: Session, principal: AdminPrincipal, clock: Callable[[], datetime] = utc_now):
        if not isinstance(principal, AdminPrincipal):
            raise AuthorizationError("Forbidden")
        self.db = db
        self.principal = principal
        self.clock = clock

    def _require_pending(self, listing_id: int, action: str):
        listing = crud.get_listing_or_404(self.db, listing_id)
        if listing.status != ListingStatus.PENDING.value:
            raise PreconditionError(
                f"Cannot {action} listing {listing_id}: status is '{listing.status}', expected 'pending'"
            )
        return listing

    def _apply(self, listing_id: int, from_statuses, values, action: str) -> Listing:
        if not crud.transition_listing(self.db, listing_id, from_statuses, values):
            # lost a race with another writer, or the row vanished
            self.db.rollback()
            current = crud.get_listing(self.db, listing_id)
            if current is None:
                raise NotFoundError(f"Listing {listing_id} not found")
            raise PreconditionError(f"Cannot {action} listing {listing_id}: status is '{current.status}'")
        crud.commit(self.db, f"{action} of listing {listing_id}")
        listing = crud.get_listing(self.db, listing_id)
        self.db.refresh(listing)
        return listing

    def approve(self, listing_id: int, make_premium: bool = False, validity_days: int = DEFAULT_VALIDITY_DAYS) -> Listing:
        validity_days = _positive_days(validity_days, "validity_days")
        self._require_pending(listing_id, "approve")
        expires_at = self.clock() + timedelta(days=validity_days)
        listing = self._apply(
            listing_id,
            [ListingStatus.PENDING.value],
            {
                "status": ListingStatus.ACTIVE.value,
                "is_premium": bool(make_premium),
                "expires_at": expires_at,
                "rejected_reason": None,
            },
            "approve",
        )
        logger.info("Admin %s approved listing %s until %s (premium=%s)",
                    self.principal.user_id, listing_id, expires_at.isoformat(), bool(make_premium))
        return listing

    def reject(self, listing_id: int, reason: Optional[str] = None) -> Listing:
        self._require_pending(listing_id, "reject")
        reason = (reason or "").strip() or DEFAULT_REJECT_REASON
        listing = self._apply(
            listing_id,
            [ListingStatus.PENDING.value],
            {
                "status": ListingStatus.REJECTED.value,
                "rejected_reason": reason,
                "expires_at": None,
            },
            "reject",
        )
        logger.info("Admin %s rejected listing %s: %s", self.principal.user_id, listing_id, reason)
        return listing

    def extend(self, listing_id: int, extra_days: int = DEFAULT_EXTEND_DAYS) -> Listing:
        """Push expiry forward from the later of the current expiry and now.

        A lapsed (expired, not yet reclaimed) listing comes back as active.
        """
        extra_days = _positive_days(extra_days, "extra_days")
        listing = crud.get_listing_or_404(self.db, listing_id)
        current = as_utc(listing.expires_at)
        if current is None or listing.status not in (ListingStatus.ACTIVE.value, ListingStatus.EXPIRED.value):
            raise PreconditionError(f"Cannot extend listing {listing_id}: it has no expiry to extend")
        now = self.clock()
        new_expiry = max(current, now) + timedelta(days=extra_days)
        listing = self._apply(
            listing_id,
            [ListingStatus.ACTIVE.value, ListingStatus.EXPIRED.value],
            {"status": ListingStatus.ACTIVE.value, "expires_at": new_expiry},
            "extend",
        )
        logger.info("Admin %s extended listing %s to %s", self.principal.user_id, listing_id, new_expiry.isoformat())
        return listing

    def set_premium(self, user_id: str, days: int = DEFAULT_PREMIUM_DAYS) -> UserRole:
        days = _positive_days(days, "days")
        premium_until = self.clock() + timedelta(days=days)
        role = crud.get_role(self.db, user_id)
        if role is None:
            role = UserRole(user_id=user_id, role=AppRole.PREMIUM.value, premium_until=premium_until)
            self.db.add(role)
        else:
            if role.role == AppRole.ADMIN.value:
                raise PreconditionError(f"User {user_id} is an admin; premium does not apply")
            self.db.execute(
                update(UserRole)
                .where(UserRole.id == role.id)
                .values(role=AppRole.PREMIUM.value, premium_until=premium_until)
                .execution_options(synchronize_session=False)
            )
        crud.commit(self.db, f"premium grant for {user_id}")
        role = crud.get_role(self.db, user_id)
        self.db.refresh(role)
        logger.info("Admin %s granted premium to %s until %s", self.principal.user_id, user_id, premium_until.isoformat())
        return role

    def remove_premium(self, user_id: str) -> UserRole:
        role = crud.get_role(self.db, user_id)
        if role is None:
            raise NotFoundError(f"User {user_id} has no role record")
        if role.role == AppRole.ADMIN.value:
            raise PreconditionError(f"User {user_id} is an admin; premium does not apply")
        self.db.execute(
            update(UserRole)
            .where(UserRole.id == role.id)
            .values(role=AppRole.USER.value, premium_until=None)
            .execution_options(synchronize_session=False)
        )
        crud.commit(self.db, f"premium removal for {user_id}")
        self.db.refresh(role)
        logger.info("Admin %s removed premium from %s", self.principal.user_id, user_id)
        return role
