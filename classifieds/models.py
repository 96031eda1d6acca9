# classifieds/models.py
"""SQLAlchemy ORM models for persisted entities.

Listings carry the lifecycle state; user roles, profiles and categories are
the records the moderation workflow reads and updates alongside them.
"""
import enum

from sqlalchemy import (
    JSON, TIMESTAMP, Boolean, CheckConstraint, Column, ForeignKey, Index, Integer, Text, func,
)
from sqlalchemy.dialects.postgresql import JSONB

from .db import Base

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class ListingStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"
    EXPIRED = "expired"


class AppRole(str, enum.Enum):
    USER = "user"
    PREMIUM = "premium"
    ADMIN = "admin"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    BLOCKED = "blocked"


class Category(Base):
    __tablename__ = "categories"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, unique=True, index=True)
    icon = Column(Text, nullable=False)
    listing_count = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())


class Listing(Base):
    __tablename__ = "listings"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_listings_price_non_negative"),
        CheckConstraint("views_count >= 0", name="ck_listings_views_non_negative"),
    )
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Text, nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text)
    price = Column(Integer, nullable=False, default=0)
    location = Column(Text)
    images = Column(JSONType, nullable=False, default=list)
    status = Column(Text, nullable=False, default=ListingStatus.PENDING.value)
    is_premium = Column(Boolean, nullable=False, default=False)
    rejected_reason = Column(Text)
    views_count = Column(Integer, nullable=False, default=0)
    expires_at = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())


class UserRole(Base):
    __tablename__ = "user_roles"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Text, nullable=False, unique=True, index=True)
    role = Column(Text, nullable=False, default=AppRole.USER.value)
    premium_until = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())


class Profile(Base):
    __tablename__ = "profiles"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Text, nullable=False, unique=True, index=True)
    display_name = Column(Text)
    telegram_username = Column(Text)
    phone = Column(Text)
    status = Column(Text, nullable=False, default=UserStatus.ACTIVE.value)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())


class Partner(Base):
    __tablename__ = "partners"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    logo_url = Column(Text)
    website_url = Column(Text)
    telegram_url = Column(Text)
    instagram_url = Column(Text)
    facebook_url = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())


class Banner(Base):
    __tablename__ = "banners"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(Text)
    image_url = Column(Text, nullable=False)
    link_url = Column(Text)
    position = Column(Text, nullable=False, default="header")
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    expires_at = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

Index("idx_listings_status_expires", Listing.status, Listing.expires_at)
Index("idx_listings_category", Listing.category_id)
