# classifieds/crud.py
"""Store-level queries and mutations.

Helpers here never commit on their own except `commit()`; callers group
their changes into one transaction and commit once, so a failed write leaves
no partial state behind.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import and_, case, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .exceptions import NotFoundError, PersistenceError
from .models import AppRole, Category, Listing, ListingStatus, Profile, UserRole, UserStatus
from .utils import logger


def commit(db: Session, what: str = "transaction"):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Commit failed for %s: %s", what, e)
        raise PersistenceError(f"Could not persist {what}") from e


def get_listing(db: Session, listing_id: int) -> Optional[Listing]:
    return db.get(Listing, listing_id)


def get_listing_or_404(db: Session, listing_id: int) -> Listing:
    obj = get_listing(db, listing_id)
    if obj is None:
        raise NotFoundError(f"Listing {listing_id} not found")
    return obj


def transition_listing(db: Session, listing_id: int, from_statuses: Iterable[str], values: Dict[str, Any]) -> bool:
    """Apply `values` in one UPDATE guarded on the current status.

    Returns False when no row matched (missing id or status changed under us).
    """
    stmt = (
        update(Listing)
        .where(and_(Listing.id == listing_id, Listing.status.in_(list(from_statuses))))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    res = db.execute(stmt)
    return res.rowcount == 1


def list_public_listings(db: Session, now: datetime, skip: int = 0, limit: int = 50, filters: Dict = None):
    q = db.query(Listing).filter(
        Listing.status == ListingStatus.ACTIVE.value,
        Listing.expires_at > now,
    )
    if filters:
        conds = []
        if filters.get("category_id") is not None:
            conds.append(Listing.category_id == filters["category_id"])
        if filters.get("min_price") is not None:
            conds.append(Listing.price >= filters["min_price"])
        if filters.get("max_price") is not None:
            conds.append(Listing.price <= filters["max_price"])
        if filters.get("location"):
            conds.append(Listing.location.ilike(f"%{filters['location']}%"))
        if conds:
            q = q.filter(and_(*conds))
    total = q.count()
    items = (
        q.order_by(Listing.is_premium.desc(), Listing.created_at.desc(), Listing.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return {"total": total, "items": items}


def get_profiles_by_user_ids(db: Session, user_ids: Iterable[str]) -> Dict[str, Profile]:
    ids = {u for u in user_ids if u}
    if not ids:
        return {}
    rows = db.execute(select(Profile).where(Profile.user_id.in_(ids))).scalars().all()
    return {p.user_id: p for p in rows}


def get_roles_by_user_ids(db: Session, user_ids: Iterable[str]) -> Dict[str, UserRole]:
    ids = {u for u in user_ids if u}
    if not ids:
        return {}
    rows = db.execute(select(UserRole).where(UserRole.user_id.in_(ids))).scalars().all()
    return {r.user_id: r for r in rows}


def list_listings_with_owners(db: Session, status: Optional[str] = None) -> List[Dict[str, Any]]:
    """Listings with their category name and owner profile joined.

    Owners are fetched in one query keyed by the set of owner ids.
    """
    stmt = (
        select(Listing, Category.name)
        .outerjoin(Category, Category.id == Listing.category_id)
        .order_by(Listing.created_at.desc(), Listing.id.desc())
    )
    if status:
        stmt = stmt.where(Listing.status == status)
    rows = db.execute(stmt).all()
    profiles = get_profiles_by_user_ids(db, (listing.user_id for listing, _ in rows))
    result = []
    for listing, category_name in rows:
        profile = profiles.get(listing.user_id)
        result.append({
            "listing": listing,
            "category_name": category_name,
            "owner": profile,
        })
    return result


def list_profiles_with_roles(db: Session) -> List[Dict[str, Any]]:
    profiles = db.execute(select(Profile).order_by(Profile.created_at.desc(), Profile.id.desc())).scalars().all()
    roles = get_roles_by_user_ids(db, (p.user_id for p in profiles))
    return [{"profile": p, "role": roles.get(p.user_id)} for p in profiles]


def get_role(db: Session, user_id: str) -> Optional[UserRole]:
    return db.execute(select(UserRole).where(UserRole.user_id == user_id)).scalar_one_or_none()


def get_profile(db: Session, user_id: str) -> Optional[Profile]:
    return db.execute(select(Profile).where(Profile.user_id == user_id)).scalar_one_or_none()


def count_listings_by_status(db: Session) -> Dict[str, int]:
    rows = db.execute(select(Listing.status, func.count(Listing.id)).group_by(Listing.status)).all()
    counts = {s.value: 0 for s in ListingStatus}
    for status, n in rows:
        counts[status] = n
    return counts


def count_users(db: Session) -> Dict[str, int]:
    total = db.scalar(select(func.count(Profile.id))) or 0
    blocked = db.scalar(
        select(func.count(Profile.id)).where(Profile.status == UserStatus.BLOCKED.value)
    ) or 0
    premium = db.scalar(
        select(func.count(UserRole.id)).where(UserRole.role == AppRole.PREMIUM.value)
    ) or 0
    return {"total_users": total, "premium_users": premium, "blocked_users": blocked}


def count_recent_listings(db: Session, user_id: str, since: datetime) -> int:
    return db.scalar(
        select(func.count(Listing.id)).where(and_(Listing.user_id == user_id, Listing.created_at >= since))
    ) or 0


def adjust_category_count(db: Session, category_id: int, delta: int):
    # never let the denormalized counter go negative
    new_count = Category.listing_count + delta
    db.execute(
        update(Category)
        .where(Category.id == category_id)
        .values(listing_count=case((new_count < 0, 0), else_=new_count))
        .execution_options(synchronize_session=False)
    )


def delete_listing_row(db: Session, listing_id: int, category_id: int, statuses: Optional[Sequence[str]] = None) -> bool:
    """Delete the listing record and decrement its category counter.

    With `statuses`, the delete only applies while the row is still in one of
    them. Returns False when nothing was deleted.
    """
    conds = [Listing.id == listing_id]
    if statuses:
        conds.append(Listing.status.in_(list(statuses)))
    res = db.execute(delete(Listing).where(and_(*conds)).execution_options(synchronize_session=False))
    if res.rowcount != 1:
        return False
    adjust_category_count(db, category_id, -1)
    return True


def increment_views(db: Session, listing_id: int):
    db.execute(
        update(Listing)
        .where(Listing.id == listing_id)
        .values(views_count=Listing.views_count + 1)
        .execution_options(synchronize_session=False)
    )


def listing_status(db: Session, listing_id: int) -> Optional[str]:
    return db.scalar(select(Listing.status).where(Listing.id == listing_id))


def select_reclaimable(db: Session, cutoff: datetime, exclude_ids: Iterable[int] = ()) -> List[Listing]:
    conds = [Listing.status == ListingStatus.EXPIRED.value, Listing.expires_at < cutoff]
    exclude_ids = list(exclude_ids)
    if exclude_ids:
        conds.append(Listing.id.notin_(exclude_ids))
    return db.execute(select(Listing).where(and_(*conds)).order_by(Listing.id)).scalars().all()


def lapse_active(db: Session, now: datetime) -> List[int]:
    """Flip active listings past expiry to expired; returns the ids that lapsed."""
    ids = db.execute(
        select(Listing.id).where(and_(Listing.status == ListingStatus.ACTIVE.value, Listing.expires_at < now))
    ).scalars().all()
    if not ids:
        return []
    db.execute(
        update(Listing)
        .where(and_(Listing.id.in_(ids), Listing.status == ListingStatus.ACTIVE.value, Listing.expires_at < now))
        .values(status=ListingStatus.EXPIRED.value)
        .execution_options(synchronize_session=False)
    )
    return list(ids)


def list_entities(db: Session, model, order_by):
    return db.execute(select(model).order_by(order_by)).scalars().all()


def create_entity(db: Session, model, data: Dict[str, Any]):
    obj = model(**data)
    db.add(obj)
    return obj


def update_entity(db: Session, model, entity_id: int, updates: Dict[str, Any]):
    obj = db.get(model, entity_id)
    if not obj:
        raise NotFoundError(f"{model.__name__} {entity_id} not found")
    for k, v in updates.items():
        setattr(obj, k, v)
    return obj


def delete_entity(db: Session, model, entity_id: int):
    obj = db.get(model, entity_id)
    if not obj:
        raise NotFoundError(f"{model.__name__} {entity_id} not found")
    db.delete(obj)
    return obj


def count_rows(db: Session, model, *conds) -> int:
    return db.scalar(select(func.count()).select_from(model).where(*conds)) or 0
