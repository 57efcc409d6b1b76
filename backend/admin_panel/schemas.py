"""Pydantic request schemas used by the API.

Schemas keep API input shapes stable and provide validation for
controller handlers and tests. The admin panel speaks camelCase JSON, so
every schema accepts both the camelCase alias and the Python field name.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema accepting camelCase keys from the panel."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterIn(CamelModel):
    """Payload for account registration and the add-admin endpoint."""
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    role: str = "admin"


class LoginIn(CamelModel):
    """Payload for the password step of the login flow."""
    email: EmailStr
    password: str


class VerifyOtpIn(CamelModel):
    """Second login step: the temp token from login plus the e-mailed code."""
    temp_token: str
    otp: str


class ResendOtpIn(CamelModel):
    temp_token: str


class UserUpdateIn(CamelModel):
    """Partial update of an admin account; omitted fields are unchanged."""
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6)
    role: Optional[str] = None


class BlogIn(CamelModel):
    """Blog post fields; all optional so the same schema serves updates."""
    tenant: Optional[str] = None
    title: Optional[str] = None
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    content: Optional[str] = None
    author: Optional[str] = None
    tags: Optional[List[str]] = None
    status: Optional[str] = None
    featured: Optional[bool] = None
    cover_image: Optional[str] = None


class SubscribeIn(CamelModel):
    email: EmailStr
    tenant: Optional[str] = None
    source: Optional[str] = None


class BulkDeleteIn(CamelModel):
    ids: List[int]


class PaymentIn(CamelModel):
    """A payment record entered by an admin."""
    tenant: Optional[str] = None
    transaction_id: str = Field(min_length=1)
    customer_name: Optional[str] = None
    customer_email: Optional[EmailStr] = None
    plan_name: str
    amount: float
    currency: str = "USD"
    billing_cycle: str = "monthly"
    payment_method: Optional[str] = None
    status: str = "pending"
    auto_renewal: bool = False
    renewal_status: Optional[str] = None
    expiry_date: Optional[datetime] = None


class StatusIn(CamelModel):
    """Generic `{status}` body for status transitions."""
    status: str


class PlanFeature(CamelModel):
    name: str = ""
    included: bool = True


class PricingPlanIn(CamelModel):
    """Pricing plan fields. `id` (or `_id`) marks an existing plan in bulk saves.

    Unknown keys are kept so flat quota fields such as `maxAuditsPerMonth`
    can be folded into `limits`.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: Optional[int] = Field(default=None, validation_alias="_id")
    tenant: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    monthly_usd: Optional[float] = Field(default=None, alias="monthlyUSD")
    annual_usd: Optional[float] = Field(default=None, alias="annualUSD")
    limits: Optional[Dict[str, int]] = None
    features: Optional[List[PlanFeature]] = None
    highlight: Optional[bool] = None
    custom: Optional[bool] = None
    is_free: Optional[bool] = None
    includes_tax: Optional[bool] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class PricingBulkIn(CamelModel):
    tenant: Optional[str] = None
    plans: List[PricingPlanIn]


class SupportMessageIn(CamelModel):
    """Ticket submitted by a customer from a tenant site."""
    tenant: Optional[str] = None
    user_name: str = Field(min_length=1)
    user_email: EmailStr
    subject: str = Field(min_length=1)
    message: str = Field(min_length=1)
    type: str = "general"
    priority: str = "medium"


class ReplyIn(CamelModel):
    message: str = Field(min_length=1)
    subject: Optional[str] = None


class NotificationIn(CamelModel):
    title: str = Field(min_length=1)
    message: str
    type: str = "info"
    link: Optional[str] = None
    user_id: Optional[int] = None
