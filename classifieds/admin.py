# classifieds/admin.py
"""Administrative command dispatch.

Each `schemas.AdminCommand` variant has exactly one handler in
`AdminConsole.HANDLERS`; an action that fails to parse into a variant never
reaches this module.
"""
from typing import Any, Callable, Dict

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from . import crud, schemas
from .auth import AdminPrincipal
from .exceptions import AuthorizationError, NotFoundError, PreconditionError
from .models import Banner, Category, Listing, ListingStatus, Partner, Profile, UserStatus
from .moderation import ModerationEngine
from .utils import logger


def _admin_listing(row: Dict[str, Any]) -> schemas.AdminListingOut:
    out = schemas.AdminListingOut.model_validate(row["listing"])
    out.category_name = row["category_name"]
    if row["owner"] is not None:
        out.owner = schemas.OwnerOut.model_validate(row["owner"])
    return out


def _changes(command, model, *exclude: str) -> Dict[str, Any]:
    """Fields the caller sent; an explicit null clears a nullable column and is ignored otherwise."""
    columns = model.__table__.columns
    return {
        k: v for k, v in command.model_dump(exclude_unset=True, exclude={"action", *exclude}).items()
        if v is not None or columns[k].nullable
    }


class AdminConsole:
    def __init__(self, db: Session, principal: AdminPrincipal, moderation: ModerationEngine | None = None):
        if not isinstance(principal, AdminPrincipal):
            raise AuthorizationError("Forbidden")
        self.db = db
        self.principal = principal
        self.moderation = moderation or ModerationEngine(db, principal)

    def execute(self, command) -> Any:
        handler = self.HANDLERS[type(command)]
        logger.info("Admin %s action: %s", self.principal.user_id, command.action)
        return handler(self, command)

    # ---- dashboard -------------------------------------------------------

    def get_stats(self, command: schemas.GetStats) -> schemas.StatsOut:
        listings = crud.count_listings_by_status(self.db)
        users = crud.count_users(self.db)
        return schemas.StatsOut(
            **users,
            pending_listings=listings[ListingStatus.PENDING.value],
            active_listings=listings[ListingStatus.ACTIVE.value],
            rejected_listings=listings[ListingStatus.REJECTED.value],
            expired_listings=listings[ListingStatus.EXPIRED.value],
        )

    def get_pending_listings(self, command: schemas.GetPendingListings):
        return [_admin_listing(r) for r in crud.list_listings_with_owners(self.db, ListingStatus.PENDING.value)]

    def get_all_listings(self, command: schemas.GetAllListings):
        status = command.status.value if command.status else None
        return [_admin_listing(r) for r in crud.list_listings_with_owners(self.db, status)]

    # ---- moderation ------------------------------------------------------

    def approve_listing(self, command: schemas.ApproveListing) -> schemas.ActionResult:
        self.moderation.approve(command.listing_id, command.is_premium, command.days)
        return schemas.ActionResult(message="Listing approved")

    def reject_listing(self, command: schemas.RejectListing) -> schemas.ActionResult:
        self.moderation.reject(command.listing_id, command.reason)
        return schemas.ActionResult(message="Listing rejected")

    def extend_listing(self, command: schemas.ExtendListing) -> schemas.ActionResult:
        self.moderation.extend(command.listing_id, command.extend_days)
        return schemas.ActionResult(message="Listing expiry extended")

    # ---- users -----------------------------------------------------------

    def get_all_users(self, command: schemas.GetAllUsers):
        result = []
        for row in crud.list_profiles_with_roles(self.db):
            out = schemas.ProfileOut.model_validate(row["profile"])
            if row["role"] is not None:
                out.user_role = schemas.UserRoleOut.model_validate(row["role"])
            result.append(out)
        return result

    def set_premium(self, command: schemas.SetPremium) -> schemas.ActionResult:
        self.moderation.set_premium(command.user_id, command.premium_days)
        return schemas.ActionResult(message="Premium granted")

    def remove_premium(self, command: schemas.RemovePremium) -> schemas.ActionResult:
        self.moderation.remove_premium(command.user_id)
        return schemas.ActionResult(message="Premium removed")

    def _set_profile_status(self, user_id: str, status: str):
        res = self.db.execute(
            update(Profile)
            .where(Profile.user_id == user_id)
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            self.db.rollback()
            raise NotFoundError(f"User {user_id} not found")
        crud.commit(self.db, f"status change of user {user_id}")

    def block_user(self, command: schemas.BlockUser) -> schemas.ActionResult:
        if command.user_id == self.principal.user_id:
            raise PreconditionError("Admins cannot block themselves")
        self._set_profile_status(command.user_id, UserStatus.BLOCKED.value)
        return schemas.ActionResult(message="User blocked")

    def unblock_user(self, command: schemas.UnblockUser) -> schemas.ActionResult:
        self._set_profile_status(command.user_id, UserStatus.ACTIVE.value)
        return schemas.ActionResult(message="User unblocked")

    # ---- categories ------------------------------------------------------

    def _require_free_slug(self, slug: str, category_id: int | None = None):
        existing = self.db.execute(select(Category).where(Category.slug == slug)).scalar_one_or_none()
        if existing is not None and existing.id != category_id:
            raise PreconditionError(f"Category slug '{slug}' is already in use")

    def get_categories(self, command: schemas.GetCategories):
        return [schemas.CategoryOut.model_validate(c) for c in crud.list_entities(self.db, Category, Category.name)]

    def create_category(self, command: schemas.CreateCategory) -> schemas.CategoryOut:
        self._require_free_slug(command.slug)
        category = crud.create_entity(self.db, Category, {**_changes(command, Category), "listing_count": 0})
        crud.commit(self.db, "category creation")
        self.db.refresh(category)
        return schemas.CategoryOut.model_validate(category)

    def update_category(self, command: schemas.UpdateCategory) -> schemas.ActionResult:
        changes = _changes(command, Category, "category_id")
        if "slug" in changes:
            self._require_free_slug(changes["slug"], command.category_id)
        crud.update_entity(self.db, Category, command.category_id, changes)
        crud.commit(self.db, f"update of category {command.category_id}")
        return schemas.ActionResult(message="Category updated")

    def delete_category(self, command: schemas.DeleteCategory) -> schemas.ActionResult:
        category = self.db.get(Category, command.category_id)
        if category is None:
            raise NotFoundError(f"Category {command.category_id} not found")
        in_use = category.listing_count or 0
        if in_use == 0:
            # the counter is denormalized; confirm against the rows themselves
            in_use = crud.count_rows(self.db, Listing, Listing.category_id == category.id)
        if in_use > 0:
            raise PreconditionError(
                f"Category has {in_use} listings. Move them to another category first."
            )
        crud.delete_entity(self.db, Category, command.category_id)
        crud.commit(self.db, f"deletion of category {command.category_id}")
        return schemas.ActionResult(message="Category deleted")

    # ---- partners --------------------------------------------------------

    def get_partners(self, command: schemas.GetPartners):
        return [schemas.PartnerOut.model_validate(p) for p in crud.list_entities(self.db, Partner, Partner.sort_order)]

    def create_partner(self, command: schemas.CreatePartner) -> schemas.PartnerOut:
        partner = crud.create_entity(self.db, Partner, _changes(command, Partner))
        crud.commit(self.db, "partner creation")
        self.db.refresh(partner)
        return schemas.PartnerOut.model_validate(partner)

    def update_partner(self, command: schemas.UpdatePartner) -> schemas.ActionResult:
        crud.update_entity(self.db, Partner, command.partner_id, _changes(command, Partner, "partner_id"))
        crud.commit(self.db, f"update of partner {command.partner_id}")
        return schemas.ActionResult(message="Partner updated")

    def delete_partner(self, command: schemas.DeletePartner) -> schemas.ActionResult:
        crud.delete_entity(self.db, Partner, command.partner_id)
        crud.commit(self.db, f"deletion of partner {command.partner_id}")
        return schemas.ActionResult(message="Partner deleted")

    # ---- banners ---------------------------------------------------------

    def get_banners(self, command: schemas.GetBanners):
        return [schemas.BannerOut.model_validate(b) for b in crud.list_entities(self.db, Banner, Banner.sort_order)]

    def create_banner(self, command: schemas.CreateBanner) -> schemas.BannerOut:
        banner = crud.create_entity(self.db, Banner, _changes(command, Banner))
        crud.commit(self.db, "banner creation")
        self.db.refresh(banner)
        return schemas.BannerOut.model_validate(banner)

    def update_banner(self, command: schemas.UpdateBanner) -> schemas.ActionResult:
        crud.update_entity(self.db, Banner, command.banner_id, _changes(command, Banner, "banner_id"))
        crud.commit(self.db, f"update of banner {command.banner_id}")
        return schemas.ActionResult(message="Banner updated")

    def delete_banner(self, command: schemas.DeleteBanner) -> schemas.ActionResult:
        crud.delete_entity(self.db, Banner, command.banner_id)
        crud.commit(self.db, f"deletion of banner {command.banner_id}")
        return schemas.ActionResult(message="Banner deleted")

    HANDLERS: Dict[type, Callable] = {
        schemas.GetStats: get_stats,
        schemas.GetPendingListings: get_pending_listings,
        schemas.GetAllListings: get_all_listings,
        schemas.ApproveListing: approve_listing,
        schemas.RejectListing: reject_listing,
        schemas.ExtendListing: extend_listing,
        schemas.GetAllUsers: get_all_users,
        schemas.SetPremium: set_premium,
        schemas.RemovePremium: remove_premium,
        schemas.BlockUser: block_user,
        schemas.UnblockUser: unblock_user,
        schemas.GetCategories: get_categories,
        schemas.CreateCategory: create_category,
        schemas.UpdateCategory: update_category,
        schemas.DeleteCategory: delete_category,
        schemas.GetPartners: get_partners,
        schemas.CreatePartner: create_partner,
        schemas.UpdatePartner: update_partner,
        schemas.DeletePartner: delete_partner,
        schemas.GetBanners: get_banners,
        schemas.CreateBanner: create_banner,
        schemas.UpdateBanner: update_banner,
        schemas.DeleteBanner: delete_banner,
    }
