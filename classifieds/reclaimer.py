# classifieds/reclaimer.py
"""Periodic lapse and reclamation of expired listings.

Each run first flips active listings past their expiry to `expired`, then
permanently removes listings that have been expired for longer than the
grace period, together with their images. A listing lapsed by a run is
never deleted by that same run. Runs are idempotent and may overlap: every
write is guarded on the status it expects.
"""
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud
from .auth import ServicePrincipal
from .config import GRACE_PERIOD_HOURS
from .exceptions import AuthorizationError, PersistenceError
from .models import ListingStatus
from .storage import ObjectStore, purge_images
from .utils import logger, utc_now


@dataclass
class ReclaimSummary:
    lapsed: int = 0
    deleted: int = 0
    images_deleted: int = 0
    image_failures: int = 0
    listing_failures: int = 0

    def as_dict(self):
        return asdict(self)


class ExpiryReclaimer:
    def __init__(
        self,
        db: Session,
        object_store: ObjectStore,
        principal: ServicePrincipal,
        grace_period: timedelta = timedelta(hours=GRACE_PERIOD_HOURS),
        clock: Callable[[], datetime] = utc_now,
    ):
        if not isinstance(principal, ServicePrincipal):
            raise AuthorizationError("Reclaimer requires a service principal")
        self.db = db
        self.object_store = object_store
        self.principal = principal
        self.grace_period = grace_period
        self.clock = clock

    def lapse_expired(self, now: datetime) -> List[int]:
        lapsed = crud.lapse_active(self.db, now)
        crud.commit(self.db, "lapse sweep")
        if lapsed:
            logger.info("Marked %d listings as expired", len(lapsed))
        return lapsed

    def reclaim_expired(self, now: datetime, summary: ReclaimSummary, just_lapsed: Iterable[int] = ()):
        cutoff = now - self.grace_period
        # snapshot before the loop; commits below expire the loaded objects
        candidates = [
            (listing.id, listing.category_id, listing.title, list(listing.images or []))
            for listing in crud.select_reclaimable(self.db, cutoff, exclude_ids=just_lapsed)
        ]
        logger.info("Found %d expired listings older than %s", len(candidates), cutoff.isoformat())
        for listing_id, category_id, title, images in candidates:
            if crud.listing_status(self.db, listing_id) != ListingStatus.EXPIRED.value:
                # revived by extend() or removed by an overlapping run since the select
                logger.info("Listing %s no longer reclaimable, skipped", listing_id)
                continue
            deleted, failed = purge_images(self.object_store, images)
            summary.images_deleted += deleted
            summary.image_failures += failed
            try:
                removed = crud.delete_listing_row(
                    self.db, listing_id, category_id, statuses=[ListingStatus.EXPIRED.value]
                )
                crud.commit(self.db, f"deletion of listing {listing_id}")
            except (SQLAlchemyError, PersistenceError) as e:
                self.db.rollback()
                summary.listing_failures += 1
                logger.error("Failed to delete listing %s: %s", listing_id, e)
                continue
            if removed:
                summary.deleted += 1
                logger.info("Deleted listing %s (%s)", listing_id, title)
            else:
                # revived or already removed by an overlapping run
                logger.info("Listing %s no longer reclaimable, skipped", listing_id)

    def run(self) -> ReclaimSummary:
        now = self.clock()
        logger.info("Running cleanup at %s as %s", now.isoformat(), self.principal.name)
        summary = ReclaimSummary()
        # lapse must be issued before reading expired rows; rows lapsed here wait for a later run
        just_lapsed = self.lapse_expired(now)
        summary.lapsed = len(just_lapsed)
        self.reclaim_expired(now, summary, just_lapsed)
        logger.info(
            "Cleanup finished: lapsed=%d deleted=%d images_deleted=%d image_failures=%d listing_failures=%d",
            summary.lapsed, summary.deleted, summary.images_deleted, summary.image_failures, summary.listing_failures,
        )
        return summary
