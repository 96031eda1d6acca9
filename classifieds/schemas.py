# classifieds/schemas.py
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .config import DEFAULT_EXTEND_DAYS, DEFAULT_PREMIUM_DAYS, DEFAULT_VALIDITY_DAYS
from .models import ListingStatus

# ---- listings -------------------------------------------------------------

class ListingBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    price: int = Field(..., ge=0)
    location: Optional[str] = Field(None, max_length=100)
    category_id: int

class ListingCreate(ListingBase):
    images: List[str] = Field(default_factory=list)

class ListingUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    price: Optional[int] = Field(None, ge=0)
    location: Optional[str] = Field(None, max_length=100)
    category_id: Optional[int] = None

class ListingOut(ListingBase):
    id: int
    user_id: str
    images: List[str] = Field(default_factory=list)
    status: ListingStatus
    is_premium: bool
    rejected_reason: Optional[str] = None
    views_count: int
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class OwnerOut(BaseModel):
    display_name: Optional[str] = None
    telegram_username: Optional[str] = None
    class Config:
        from_attributes = True

class AdminListingOut(ListingOut):
    category_name: Optional[str] = None
    owner: Optional[OwnerOut] = None

# ---- users / ancillary ----------------------------------------------------

class UserRoleOut(BaseModel):
    role: str
    premium_until: Optional[datetime] = None
    class Config:
        from_attributes = True

class ProfileOut(BaseModel):
    user_id: str
    display_name: Optional[str] = None
    telegram_username: Optional[str] = None
    phone: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    user_role: Optional[UserRoleOut] = None
    class Config:
        from_attributes = True

class CategoryOut(BaseModel):
    id: int
    name: str
    slug: str
    icon: str
    listing_count: int
    class Config:
        from_attributes = True

class PartnerOut(BaseModel):
    id: int
    name: str
    logo_url: Optional[str] = None
    website_url: Optional[str] = None
    telegram_url: Optional[str] = None
    instagram_url: Optional[str] = None
    facebook_url: Optional[str] = None
    is_active: bool
    sort_order: int
    class Config:
        from_attributes = True

class BannerOut(BaseModel):
    id: int
    title: Optional[str] = None
    image_url: str
    link_url: Optional[str] = None
    position: str
    is_active: bool
    sort_order: int
    expires_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class StatsOut(BaseModel):
    total_users: int
    premium_users: int
    blocked_users: int
    pending_listings: int
    active_listings: int
    rejected_listings: int
    expired_listings: int

class ActionResult(BaseModel):
    success: bool = True
    message: str

# ---- admin commands: one variant per action ------------------------------

class GetStats(BaseModel):
    action: Literal["get_stats"]

class GetPendingListings(BaseModel):
    action: Literal["get_pending_listings"]

class GetAllListings(BaseModel):
    action: Literal["get_all_listings"]
    status: Optional[ListingStatus] = None

class ApproveListing(BaseModel):
    action: Literal["approve_listing"]
    listing_id: int
    is_premium: bool = False
    days: int = Field(DEFAULT_VALIDITY_DAYS, gt=0)

class RejectListing(BaseModel):
    action: Literal["reject_listing"]
    listing_id: int
    reason: Optional[str] = None

class ExtendListing(BaseModel):
    action: Literal["extend_listing"]
    listing_id: int
    extend_days: int = Field(DEFAULT_EXTEND_DAYS, gt=0)

class GetAllUsers(BaseModel):
    action: Literal["get_all_users"]

class SetPremium(BaseModel):
    action: Literal["set_premium"]
    user_id: str
    premium_days: int = Field(DEFAULT_PREMIUM_DAYS, gt=0)

class RemovePremium(BaseModel):
    action: Literal["remove_premium"]
    user_id: str

class BlockUser(BaseModel):
    action: Literal["block_user"]
    user_id: str

class UnblockUser(BaseModel):
    action: Literal["unblock_user"]
    user_id: str

class GetCategories(BaseModel):
    action: Literal["get_categories"]

class CreateCategory(BaseModel):
    action: Literal["create_category"]
    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    icon: str = Field(..., min_length=1)

class UpdateCategory(BaseModel):
    action: Literal["update_category"]
    category_id: int
    name: Optional[str] = None
    slug: Optional[str] = None
    icon: Optional[str] = None

class DeleteCategory(BaseModel):
    action: Literal["delete_category"]
    category_id: int

class GetPartners(BaseModel):
    action: Literal["get_partners"]

class CreatePartner(BaseModel):
    action: Literal["create_partner"]
    name: str = Field(..., min_length=1)
    logo_url: Optional[str] = None
    website_url: Optional[str] = None
    telegram_url: Optional[str] = None
    instagram_url: Optional[str] = None
    facebook_url: Optional[str] = None
    sort_order: int = 0

class UpdatePartner(BaseModel):
    action: Literal["update_partner"]
    partner_id: int
    name: Optional[str] = None
    logo_url: Optional[str] = None
    website_url: Optional[str] = None
    telegram_url: Optional[str] = None
    instagram_url: Optional[str] = None
    facebook_url: Optional[str] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None

class DeletePartner(BaseModel):
    action: Literal["delete_partner"]
    partner_id: int

class GetBanners(BaseModel):
    action: Literal["get_banners"]

class CreateBanner(BaseModel):
    action: Literal["create_banner"]
    image_url: str = Field(..., min_length=1)
    title: Optional[str] = None
    link_url: Optional[str] = None
    position: str = "header"
    expires_at: Optional[datetime] = None
    sort_order: int = 0

class UpdateBanner(BaseModel):
    action: Literal["update_banner"]
    banner_id: int
    title: Optional[str] = None
    image_url: Optional[str] = None
    link_url: Optional[str] = None
    position: Optional[str] = None
    is_active: Optional[bool] = None
    expires_at: Optional[datetime] = None
    sort_order: Optional[int] = None

class DeleteBanner(BaseModel):
    action: Literal["delete_banner"]
    banner_id: int


AdminCommand = Annotated[
    Union[
        GetStats, GetPendingListings, GetAllListings,
        ApproveListing, RejectListing, ExtendListing,
        GetAllUsers, SetPremium, RemovePremium, BlockUser, UnblockUser,
        GetCategories, CreateCategory, UpdateCategory, DeleteCategory,
        GetPartners, CreatePartner, UpdatePartner, DeletePartner,
        GetBanners, CreateBanner, UpdateBanner, DeleteBanner,
    ],
    Field(discriminator="action"),
]
