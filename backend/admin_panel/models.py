"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Content tables carry a `tenant` column naming the product the record
belongs to. List/dict fields are stored as JSON columns; services always
assign new containers instead of mutating them in place so SQLAlchemy
notices the change.
"""

from typing import Dict, List, Optional
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, JSON, UniqueConstraint
from sqlmodel import SQLModel, Field


ROLE_SUPERADMIN = "superadmin"
ROLE_ADMIN = "admin"
VALID_ROLES = (ROLE_SUPERADMIN, ROLE_ADMIN)

BLOG_STATUSES = ("draft", "published")
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded", "cancelled")
BILLING_CYCLES = ("monthly", "annual")
TICKET_STATUSES = ("new", "in_progress", "resolved", "closed")
TICKET_PRIORITIES = ("low", "medium", "high", "urgent")
TICKET_TYPES = ("general", "technical", "billing", "feature", "bug")
NOTIFICATION_TYPES = ("info", "success", "warning", "error")


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite drops tzinfo on round-trip anyway."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def timestamp_field(nullable: bool = False, **kwargs):
    """A naive UTC datetime stored in a plain `DateTime` column."""
    return Field(sa_column=Column(DateTime(timezone=False), nullable=nullable), **kwargs)


class User(SQLModel, table=True):
    """An admin panel account.

    Fields:
    - `email`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `otp_hash` / `otp_expires_at` / `otp_attempts`: pending two-step
      login state; all cleared once the code is used or exhausted
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    role: str = Field(default=ROLE_ADMIN, index=True)
    otp_hash: Optional[str] = None
    otp_expires_at: Optional[datetime] = timestamp_field(nullable=True, default=None)
    otp_attempts: int = 0
    last_login_at: Optional[datetime] = timestamp_field(nullable=True, default=None)
    created_at: datetime = timestamp_field(default_factory=utcnow)
    updated_at: datetime = timestamp_field(default_factory=utcnow)


class Blog(SQLModel, table=True):
    """A blog post of one tenant. `slug` is unique within the tenant."""
    __table_args__ = (UniqueConstraint("tenant", "slug"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant: str = Field(index=True)
    title: str
    slug: str = Field(index=True)
    excerpt: Optional[str] = None
    content: str
    author: str = "Admin"
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    status: str = Field(default="draft", index=True)
    featured: bool = False
    cover_image: Optional[str] = None
    read_time: str = "1 min read"
    published_at: Optional[datetime] = timestamp_field(nullable=True, default=None)
    created_at: datetime = timestamp_field(default_factory=utcnow)
    updated_at: datetime = timestamp_field(default_factory=utcnow)


class Subscriber(SQLModel, table=True):
    """A newsletter subscription."""
    __table_args__ = (UniqueConstraint("tenant", "email"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant: str = Field(index=True)
    email: str = Field(index=True)
    source: Optional[str] = None
    is_active: bool = True
    created_at: datetime = timestamp_field(default_factory=utcnow)
    updated_at: datetime = timestamp_field(default_factory=utcnow)


class Payment(SQLModel, table=True):
    """A payment transaction recorded for a tenant customer."""
    id: Optional[int] = Field(default=None, primary_key=True)
    tenant: str = Field(index=True)
    transaction_id: str = Field(index=True, unique=True)
    customer_name: Optional[str] = None
    customer_email: Optional[str] = Field(default=None, index=True)
    plan_name: str
    amount: float = 0.0
    currency: str = "USD"
    billing_cycle: str = "monthly"
    payment_method: Optional[str] = None
    status: str = Field(default="pending", index=True)
    auto_renewal: bool = False
    renewal_status: Optional[str] = None
    expiry_date: Optional[datetime] = timestamp_field(nullable=True, default=None)
    created_at: datetime = timestamp_field(default_factory=utcnow)
    updated_at: datetime = timestamp_field(default_factory=utcnow)


class PricingPlan(SQLModel, table=True):
    """A pricing tier shown on a tenant's pricing page.

    `limits` maps a quota name (e.g. `maxAuditsPerMonth`) to its value;
    `features` is a list of `{"name": str, "included": bool}`.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    tenant: str = Field(index=True)
    name: str
    description: Optional[str] = None
    monthly_usd: float = 0.0
    annual_usd: float = 0.0
    limits: Dict[str, int] = Field(default_factory=dict, sa_column=Column(JSON))
    features: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    highlight: bool = False
    custom: bool = False
    is_free: bool = False
    includes_tax: bool = False
    is_active: bool = True
    sort_order: int = 0
    created_at: datetime = timestamp_field(default_factory=utcnow)
    updated_at: datetime = timestamp_field(default_factory=utcnow)


class SupportMessage(SQLModel, table=True):
    """A support ticket submitted by a tenant customer."""
    id: Optional[int] = Field(default=None, primary_key=True)
    tenant: str = Field(index=True)
    user_name: str
    user_email: str = Field(index=True)
    subject: str
    message: str
    type: str = "general"
    priority: str = "medium"
    status: str = Field(default="new", index=True)
    replies: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    last_replied_at: Optional[datetime] = timestamp_field(nullable=True, default=None)
    created_at: datetime = timestamp_field(default_factory=utcnow)
    updated_at: datetime = timestamp_field(default_factory=utcnow)


class Notification(SQLModel, table=True):
    """An in-panel notification; `user_id` of `None` targets every admin."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    title: str
    message: str
    type: str = "info"
    link: Optional[str] = None
    is_read: bool = False
    created_at: datetime = timestamp_field(default_factory=utcnow)
