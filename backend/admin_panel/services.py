"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
the mailer and auxiliary logic. Services are intentionally thin: they
perform validation, execute domain logic and persist aggregates via
repositories. Validation and conflicts raise `ValueError`; lookups of
missing records return `None` so controllers can answer 404.

The admin login is a small state machine:

    unauthenticated --login--> authenticated          (roles without OTP)
    unauthenticated --login--> otp-pending --verify--> authenticated

While a login is OTP-pending the client holds a short-lived `tempToken`
(a JWT with `purpose="otp"`) and the user row holds only the hash and
expiry of the e-mailed code.
"""

import csv
import io
import logging
import re
import secrets
import string
from datetime import datetime, timedelta, timezone, date
from typing import Iterable, List, Optional, Tuple

import jwt
from passlib.context import CryptContext
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .models import utcnow
from .utils import mailer
from .utils.pagination import clamp, offset_for, pagination_meta

logger = logging.getLogger("admin_panel.services")

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

PURPOSE_ACCESS = "access"
PURPOSE_OTP = "otp"


class AuthenticationError(Exception):
    """Credentials or tokens could not be verified (HTTP 401)."""


class CooldownError(Exception):
    """An action was repeated too soon (HTTP 429)."""

    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after


class DeliveryError(Exception):
    """Outgoing e-mail could not be delivered (HTTP 502)."""


# ---------------------------------------------------------------- helpers

def resolve_tenant(tenant: Optional[str]) -> str:
    """Return `tenant` or the default one, rejecting unknown names."""
    t = (tenant or settings.DEFAULT_TENANT).strip()
    if t not in settings.TENANTS:
        raise ValueError(f"unknown tenant: {t}")
    return t


def _check_choice(value: str, allowed: Iterable[str], field: str) -> str:
    if value not in allowed:
        raise ValueError(f"invalid {field}: {value}")
    return value


def slugify(text: str) -> str:
    """Lowercase `text` and collapse runs of non-alphanumerics into `-`."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug or "post"


def estimate_read_time(content: str, words_per_minute: int = 200) -> str:
    words = len(re.findall(r"\S+", re.sub(r"<[^>]+>", " ", content or "")))
    minutes = max(1, -(-words // words_per_minute))
    return f"{minutes} min read"


def generate_otp(length: int) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


def encode_token(claims: dict, expires_delta: timedelta) -> str:
    """Sign `claims` with the configured secret and an `exp` claim."""
    expire = datetime.now(timezone.utc) + expires_delta
    payload = {**claims, "exp": int(expire.timestamp())}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def read_token(token: str, purpose: str) -> dict:
    """Decode a token and check it was issued for `purpose`.

    Raises `AuthenticationError` for expired, malformed or mis-purposed tokens.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("token expired")
    except jwt.PyJWTError:
        raise AuthenticationError("invalid token")
    if payload.get("purpose") != purpose or not payload.get("id"):
        raise AuthenticationError("invalid token")
    return payload


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _start_of_month(now: datetime) -> datetime:
    return _start_of_day(now).replace(day=1)


# ------------------------------------------------------------------- auth

class AuthService:
    """Registration, password login and the OTP second step."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def has_superadmin(self) -> bool:
        return self.user_repo.count(models.ROLE_SUPERADMIN) > 0

    def register(self, name: str, email: str, password: str, role: str = models.ROLE_ADMIN) -> models.User:
        """Create a new account with a hashed password.

        Returns the persisted `User` instance. Raises `ValueError` for an
        unknown role or an e-mail that is already registered.
        """
        _check_choice(role, models.VALID_ROLES, "role")
        if self.user_repo.get_by_email(email):
            raise ValueError("User already exists with this email")
        user = models.User(name=name.strip(), email=email.lower(), password_hash=PWD_CTX.hash(password), role=role)
        user = self.user_repo.create(user)
        logger.info("account created id=%s role=%s", user.id, user.role)
        return user

    def authenticate(self, email: str, password: str) -> Optional[models.User]:
        """Return the user when the password matches, else `None`."""
        user = self.user_repo.get_by_email(email)
        if not user or not PWD_CTX.verify(password, user.password_hash):
            logger.info("login rejected for %s", email)
            return None
        return user

    def requires_otp(self, user: models.User) -> bool:
        return user.role in settings.OTP_REQUIRED_ROLES

    def issue_access_token(self, user: models.User) -> str:
        """Sign an access token and record the login time."""
        user.last_login_at = utcnow()
        self.user_repo.save(user)
        logger.info("login completed id=%s role=%s", user.id, user.role)
        claims = {"id": user.id, "role": user.role, "email": user.email, "purpose": PURPOSE_ACCESS}
        return encode_token(claims, timedelta(hours=settings.JWT_EXPIRE_HOURS))

    def start_otp(self, user: models.User) -> str:
        """Issue and e-mail a fresh OTP; return the temp token for the second step.

        Any previously issued code for the user stops working.
        """
        otp = generate_otp(settings.OTP_LENGTH)
        user.otp_hash = PWD_CTX.hash(otp)
        user.otp_expires_at = utcnow() + timedelta(minutes=settings.OTP_TTL_MINUTES)
        user.otp_attempts = 0
        self.user_repo.save(user)
        if not mailer.send_otp_email(user.email, otp):
            self._clear_otp(user)
            raise DeliveryError("Failed to send OTP email")
        logger.info("otp issued id=%s", user.id)
        claims = {"id": user.id, "email": user.email, "purpose": PURPOSE_OTP}
        return encode_token(claims, timedelta(minutes=settings.OTP_TOKEN_EXPIRE_MINUTES))

    def user_for_temp_token(self, temp_token: str) -> models.User:
        payload = read_token(temp_token, PURPOSE_OTP)
        user = self.user_repo.get(payload["id"])
        if not user:
            raise AuthenticationError("User not found")
        return user

    def verify_otp(self, temp_token: str, otp: str) -> Tuple[models.User, str]:
        """Check the e-mailed code and complete the login.

        Returns `(user, access_token)`. Wrong codes count against
        `OTP_MAX_ATTEMPTS`; the code is discarded once exhausted or expired.
        """
        user = self.user_for_temp_token(temp_token)
        if not user.otp_hash or not user.otp_expires_at:
            raise ValueError("No OTP pending. Please request a new one.")
        if utcnow() > user.otp_expires_at:
            self._clear_otp(user)
            raise ValueError("OTP expired")
        if not PWD_CTX.verify(otp.strip(), user.otp_hash):
            user.otp_attempts += 1
            remaining = settings.OTP_MAX_ATTEMPTS - user.otp_attempts
            logger.info("otp mismatch id=%s attempts=%s", user.id, user.otp_attempts)
            if remaining <= 0:
                self._clear_otp(user)
                raise ValueError("Too many invalid attempts. Please request a new OTP.")
            self.user_repo.save(user)
            raise ValueError("Invalid OTP")
        self._clear_otp(user)
        return user, self.issue_access_token(user)

    def resend_otp(self, temp_token: str) -> Tuple[models.User, str]:
        """Re-issue the code for a pending login, honouring the resend cooldown."""
        user = self.user_for_temp_token(temp_token)
        if user.otp_expires_at:
            issued_at = user.otp_expires_at - timedelta(minutes=settings.OTP_TTL_MINUTES)
            elapsed = (utcnow() - issued_at).total_seconds()
            wait = int(settings.OTP_RESEND_COOLDOWN_SECONDS - elapsed)
            if wait > 0:
                raise CooldownError(f"Please wait {wait}s before requesting a new OTP", wait)
        return user, self.start_otp(user)

    def _clear_otp(self, user: models.User) -> None:
        user.otp_hash = None
        user.otp_expires_at = None
        user.otp_attempts = 0
        self.user_repo.save(user)


# ------------------------------------------------------------------ admin

class AdminService:
    """Admin account management and dashboard summaries."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def summary(self, user: models.User, tenant: Optional[str] = None) -> dict:
        """Headline counters for the dashboards, optionally for one tenant."""
        if tenant:
            tenant = resolve_tenant(tenant)
        open_statuses = ("new", "in_progress")
        return {
            "tenant": tenant,
            "admins": self.user_repo.count(),
            "blogs": repositories.BlogRepository(self.session).count(tenant),
            "publishedBlogs": repositories.BlogRepository(self.session).count(tenant, "published"),
            "subscribers": repositories.SubscriberRepository(self.session).count(tenant, active=True),
            "payments": repositories.PaymentRepository(self.session).count(tenant),
            "revenue": repositories.PaymentRepository(self.session).revenue(tenant),
            "openTickets": repositories.SupportMessageRepository(self.session).count(tenant, statuses=open_statuses),
            "unreadNotifications": repositories.NotificationRepository(self.session).unread_count(user.id),
        }

    def list_users(self, role: Optional[str] = None) -> List[models.User]:
        return self.user_repo.list(role)

    def get_user(self, user_id: int) -> Optional[models.User]:
        return self.user_repo.get(user_id)

    def add_admin(self, name: str, email: str, password: str, role: str, created_by: models.User) -> models.User:
        user = AuthService(self.session).register(name, email, password, role)
        NotificationService(self.session).notify(
            "New admin added",
            f"{created_by.name} added {user.name} ({user.role})",
            type="success",
            link=f"/admin/users/{user.id}",
        )
        return user

    def update_user(self, user_id: int, changes: dict) -> Optional[models.User]:
        """Apply a partial update; returns `None` when the user does not exist."""
        user = self.user_repo.get(user_id)
        if not user:
            return None
        email = changes.get("email")
        if email and email.lower() != user.email:
            if self.user_repo.get_by_email(email):
                raise ValueError("Email already in use")
            user.email = email.lower()
        if changes.get("name"):
            user.name = changes["name"].strip()
        role = changes.get("role")
        if role:
            _check_choice(role, models.VALID_ROLES, "role")
            if user.role == models.ROLE_SUPERADMIN and role != models.ROLE_SUPERADMIN and self._is_last_superadmin():
                raise ValueError("Cannot demote the last superadmin")
            user.role = role
        if changes.get("password"):
            user.password_hash = PWD_CTX.hash(changes["password"])
        user.updated_at = utcnow()
        logger.info("account updated id=%s fields=%s", user.id, sorted(k for k, v in changes.items() if v))
        return self.user_repo.save(user)

    def delete_user(self, user_id: int, acting_user: models.User) -> Optional[models.User]:
        user = self.user_repo.get(user_id)
        if not user:
            return None
        if user.id == acting_user.id:
            raise ValueError("You cannot delete your own account")
        if user.role == models.ROLE_SUPERADMIN and self._is_last_superadmin():
            raise ValueError("Cannot delete the last superadmin")
        repositories.NotificationRepository(self.session).delete_for_user(user.id)
        self.user_repo.delete(user)
        logger.info("account deleted id=%s by=%s", user_id, acting_user.id)
        return user

    def _is_last_superadmin(self) -> bool:
        return self.user_repo.count(models.ROLE_SUPERADMIN) <= 1


# ------------------------------------------------------------------ blogs

class BlogService:
    """Blog posts: slugs, read time and publish timestamps are derived here."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.BlogRepository(session)

    def list(self, tenant=None, status=None, featured=None, tag=None, search=None, page=1, limit=20,
             include_drafts: bool = False):
        if tenant:
            tenant = resolve_tenant(tenant)
        if status:
            _check_choice(status, models.BLOG_STATUSES, "status")
        if not include_drafts:
            status = "published"
        page, limit = clamp(page, limit)
        items, total = self.repo.search(tenant, status, featured, tag, search, offset_for(page, limit), limit)
        return items, pagination_meta(page, limit, total)

    def get(self, key: str, include_drafts: bool = False) -> Optional[models.Blog]:
        """Look a post up by numeric id or by slug."""
        blog = self.repo.get(int(key)) if key.isdigit() else None
        if blog is None:
            blog = self.repo.find_by_slug(key)
        if blog and blog.status != "published" and not include_drafts:
            return None
        return blog

    def create(self, data: dict) -> models.Blog:
        if not (data.get("title") or "").strip():
            raise ValueError("title is required")
        if not (data.get("content") or "").strip():
            raise ValueError("content is required")
        blog = models.Blog(tenant=resolve_tenant(data.get("tenant")), title="", slug="", content="")
        self._apply(blog, data)
        return self.repo.save(blog)

    def update(self, blog_id: int, data: dict) -> Optional[models.Blog]:
        blog = self.repo.get(blog_id)
        if not blog:
            return None
        if "tenant" in data and data["tenant"]:
            blog.tenant = resolve_tenant(data["tenant"])
        self._apply(blog, data)
        blog.updated_at = utcnow()
        return self.repo.save(blog)

    def delete(self, blog_id: int) -> Optional[models.Blog]:
        blog = self.repo.get(blog_id)
        if blog:
            self.repo.delete(blog)
        return blog

    def _apply(self, blog: models.Blog, data: dict) -> None:
        for field in ("title", "excerpt", "author", "cover_image", "featured"):
            if data.get(field) is not None:
                setattr(blog, field, data[field])
        if data.get("title") is not None and not data["title"].strip():
            raise ValueError("title is required")
        if data.get("content") is not None:
            if not data["content"].strip():
                raise ValueError("content is required")
            blog.content = data["content"]
            blog.read_time = estimate_read_time(blog.content)
        if data.get("tags") is not None:
            blog.tags = [t.strip() for t in data["tags"] if t and t.strip()]
        if data.get("status") is not None:
            blog.status = _check_choice(data["status"], models.BLOG_STATUSES, "status")
        if blog.status == "published" and blog.published_at is None:
            blog.published_at = utcnow()
        requested = data.get("slug")
        if requested or not blog.slug:
            blog.slug = self._unique_slug(blog.tenant, slugify(requested or blog.title), blog.id)

    def _unique_slug(self, tenant: str, base: str, exclude_id: Optional[int]) -> str:
        slug, n = base, 2
        while self.repo.slug_exists(tenant, slug, exclude_id):
            slug = f"{base}-{n}"
            n += 1
        return slug


# ------------------------------------------------------------- newsletter

class NewsletterService:
    """Subscriber management, statistics and CSV export."""
    EXPORT_COLUMNS = ("email", "tenant", "source", "status", "subscribedAt")

    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.SubscriberRepository(session)

    def subscribe(self, email: str, tenant: Optional[str] = None, source: Optional[str] = None):
        """Idempotent public subscribe. Returns `(subscriber, outcome)`.

        `outcome` is one of `subscribed`, `resubscribed`, `already_subscribed`.
        """
        tenant = resolve_tenant(tenant)
        existing = self.repo.get_by_email(tenant, email)
        if existing and existing.is_active:
            return existing, "already_subscribed"
        if existing:
            existing.is_active = True
            existing.updated_at = utcnow()
            return self.repo.save(existing), "resubscribed"
        sub = models.Subscriber(tenant=tenant, email=email.lower(), source=source)
        return self.repo.save(sub), "subscribed"

    def unsubscribe(self, email: str, tenant: Optional[str] = None) -> Optional[models.Subscriber]:
        sub = self.repo.get_by_email(resolve_tenant(tenant), email)
        if not sub:
            return None
        sub.is_active = False
        sub.updated_at = utcnow()
        return self.repo.save(sub)

    def add(self, email: str, tenant: Optional[str] = None, source: str = "admin") -> models.Subscriber:
        tenant = resolve_tenant(tenant)
        if self.repo.get_by_email(tenant, email):
            raise ValueError("Email is already subscribed")
        return self.repo.save(models.Subscriber(tenant=tenant, email=email.lower(), source=source))

    def list(self, tenant=None, search=None, page=1, limit=20):
        if tenant:
            tenant = resolve_tenant(tenant)
        page, limit = clamp(page, limit)
        items, total = self.repo.search(tenant, search, None, offset_for(page, limit), limit)
        return items, pagination_meta(page, limit, total)

    def delete(self, subscriber_id: int) -> Optional[models.Subscriber]:
        sub = self.repo.get(subscriber_id)
        if sub:
            self.repo.delete(sub)
        return sub

    def bulk_delete(self, ids: List[int]) -> int:
        if not ids:
            raise ValueError("ids must not be empty")
        return self.repo.delete_many(ids)

    def stats(self, tenant: Optional[str] = None, now: Optional[datetime] = None) -> dict:
        if tenant:
            tenant = resolve_tenant(tenant)
        now = now or utcnow()
        return {
            "total": self.repo.count(tenant),
            "active": self.repo.count(tenant, active=True),
            "today": self.repo.count(tenant, since=_start_of_day(now)),
            "thisWeek": self.repo.count(tenant, since=now - timedelta(days=7)),
            "thisMonth": self.repo.count(tenant, since=_start_of_month(now)),
        }

    def export_csv(self, tenant: Optional[str] = None) -> str:
        if tenant:
            tenant = resolve_tenant(tenant)
        buf = io.StringIO()
        writer = csv.writer(buf)
        writer.writerow(self.EXPORT_COLUMNS)
        for s in self.repo.list_all(tenant):
            writer.writerow([
                s.email, s.tenant, s.source or "",
                "active" if s.is_active else "unsubscribed",
                s.created_at.isoformat() if s.created_at else "",
            ])
        return buf.getvalue()


# --------------------------------------------------------------- payments

class PaymentService:
    """Payment records, status changes and revenue statistics."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.PaymentRepository(session)

    def list(self, tenant=None, search=None, status=None, start_date: Optional[date] = None,
             end_date: Optional[date] = None, page=1, limit=20):
        """Filter payments; both dates are inclusive calendar days."""
        if tenant:
            tenant = resolve_tenant(tenant)
        if status:
            _check_choice(status, models.PAYMENT_STATUSES, "status")
        if start_date and end_date and start_date > end_date:
            raise ValueError("startDate must not be after endDate")
        start = datetime.combine(start_date, datetime.min.time()) if start_date else None
        end = datetime.combine(end_date + timedelta(days=1), datetime.min.time()) if end_date else None
        page, limit = clamp(page, limit)
        items, total = self.repo.search(tenant, search, status, start, end, offset_for(page, limit), limit)
        return items, pagination_meta(page, limit, total)

    def get(self, payment_id: int) -> Optional[models.Payment]:
        return self.repo.get(payment_id)

    def create(self, data: dict) -> models.Payment:
        if data["amount"] < 0:
            raise ValueError("amount must be >= 0")
        _check_choice(data.get("status", "pending"), models.PAYMENT_STATUSES, "status")
        _check_choice(data.get("billing_cycle", "monthly"), models.BILLING_CYCLES, "billingCycle")
        if self.repo.get_by_transaction_id(data["transaction_id"]):
            raise ValueError("transactionId already recorded")
        fields = dict(data)
        fields["tenant"] = resolve_tenant(data.get("tenant"))
        fields["currency"] = (data.get("currency") or "USD").upper()
        return self.repo.save(models.Payment(**fields))

    def update_status(self, payment_id: int, status: str) -> Optional[models.Payment]:
        _check_choice(status, models.PAYMENT_STATUSES, "status")
        payment = self.repo.get(payment_id)
        if not payment:
            return None
        payment.status = status
        payment.updated_at = utcnow()
        logger.info("payment %s status -> %s", payment.transaction_id, status)
        return self.repo.save(payment)

    def stats(self, tenant: Optional[str] = None, now: Optional[datetime] = None) -> dict:
        if tenant:
            tenant = resolve_tenant(tenant)
        now = now or utcnow()
        counts = {s: 0 for s in models.PAYMENT_STATUSES}
        counts.update(self.repo.status_counts(tenant))
        return {
            "totalRevenue": round(self.repo.revenue(tenant), 2),
            "monthlyRevenue": round(self.repo.revenue(tenant, since=_start_of_month(now)), 2),
            "paymentStatusCounts": counts,
            "totalPayments": sum(counts.values()),
        }


# ---------------------------------------------------------------- pricing

DEFAULT_PLANS = (
    {
        "name": "Free", "description": "Get started at no cost", "is_free": True,
        "features": [{"name": "Basic reports", "included": True}, {"name": "Priority support", "included": False}],
    },
    {
        "name": "Pro", "description": "For growing teams", "monthly_usd": 19.0, "annual_usd": 190.0,
        "highlight": True,
        "features": [{"name": "Basic reports", "included": True}, {"name": "Priority support", "included": True}],
    },
    {
        "name": "Enterprise", "description": "Custom limits and onboarding", "custom": True,
        "features": [{"name": "Dedicated manager", "included": True}, {"name": "Custom integrations", "included": True}],
    },
)


class PricingService:
    """Pricing plans. Every write enforces the free-plan and price invariants."""
    _FIELDS = ("name", "description", "monthly_usd", "annual_usd", "limits", "features", "highlight",
               "custom", "is_free", "includes_tax", "is_active", "sort_order")

    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.PricingPlanRepository(session)

    def list(self, tenant: Optional[str] = None, active_only: bool = False) -> List[models.PricingPlan]:
        if tenant:
            tenant = resolve_tenant(tenant)
        return self.repo.list(tenant, active_only)

    def get(self, plan_id: int) -> Optional[models.PricingPlan]:
        return self.repo.get(plan_id)

    def create(self, data: dict, tenant: Optional[str] = None) -> models.PricingPlan:
        plan = models.PricingPlan(tenant=resolve_tenant(data.get("tenant") or tenant), name="")
        if data.get("sort_order") is None:
            data = {**data, "sort_order": self.repo.count(plan.tenant)}
        self._apply(plan, data)
        return self.repo.save(plan)

    def update(self, plan_id: int, data: dict) -> Optional[models.PricingPlan]:
        plan = self.repo.get(plan_id)
        if not plan:
            return None
        self._apply(plan, data)
        return self.repo.save(plan)

    def bulk_save(self, plans: List[dict], tenant: Optional[str] = None) -> List[models.PricingPlan]:
        """Upsert a whole pricing table in one transaction.

        Entries with an `id` update that plan; others are created. A
        missing `sort_order` becomes the entry's position. Nothing is
        written when any entry fails validation.
        """
        tenant = resolve_tenant(tenant)
        staged = []
        for position, data in enumerate(plans):
            if data.get("id") is not None:
                plan = self.repo.get(data["id"])
                if not plan:
                    raise ValueError(f"pricing plan not found: {data['id']}")
            else:
                plan = models.PricingPlan(tenant=resolve_tenant(data.get("tenant") or tenant), name="")
            if data.get("sort_order") is None:
                data = {**data, "sort_order": position}
            self._apply(plan, data)
            staged.append(plan)
        for plan in staged:
            self.session.add(plan)
        self.session.commit()
        for plan in staged:
            self.session.refresh(plan)
        logger.info("pricing table saved tenant=%s plans=%s", tenant, len(staged))
        return self.repo.list(tenant)

    def delete(self, plan_id: int) -> Optional[models.PricingPlan]:
        plan = self.repo.get(plan_id)
        if plan:
            self.repo.delete(plan)
        return plan

    def toggle_status(self, plan_id: int) -> Optional[models.PricingPlan]:
        plan = self.repo.get(plan_id)
        if not plan:
            return None
        plan.is_active = not plan.is_active
        plan.updated_at = utcnow()
        return self.repo.save(plan)

    def initialize_defaults(self, tenant: Optional[str] = None) -> List[models.PricingPlan]:
        """Seed Free/Pro/Enterprise for a tenant that has no plans yet."""
        tenant = resolve_tenant(tenant)
        if self.repo.count(tenant):
            raise ValueError(f"pricing plans already exist for {tenant}")
        return self.bulk_save([dict(p) for p in DEFAULT_PLANS], tenant)

    def _apply(self, plan: models.PricingPlan, data: dict) -> None:
        for field in self._FIELDS:
            if data.get(field) is not None:
                value = data[field]
                if field == "features":
                    value = [
                        {"name": f["name"].strip(), "included": bool(f.get("included", True))}
                        for f in value if (f.get("name") or "").strip()
                    ]
                elif field == "limits":
                    value = {k: int(v) for k, v in value.items()}
                setattr(plan, field, value)
        if data.get("quotas"):
            # single quota edits keep the other stored limits
            plan.limits = {**(plan.limits or {}), **{k: int(v) for k, v in data["quotas"].items()}}
        if not (plan.name or "").strip():
            raise ValueError("plan name is required")
        if plan.is_free:
            plan.monthly_usd = 0.0
            plan.annual_usd = 0.0
            plan.custom = False
        if plan.monthly_usd < 0 or plan.annual_usd < 0:
            raise ValueError("prices must be >= 0")
        plan.updated_at = utcnow()


# ---------------------------------------------------------------- support

class SupportService:
    """Support tickets: intake, triage, replies and statistics."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.SupportMessageRepository(session)

    def submit(self, data: dict) -> models.SupportMessage:
        _check_choice(data.get("type", "general"), models.TICKET_TYPES, "type")
        _check_choice(data.get("priority", "medium"), models.TICKET_PRIORITIES, "priority")
        fields = dict(data)
        fields["tenant"] = resolve_tenant(data.get("tenant"))
        ticket = self.repo.save(models.SupportMessage(**fields))
        NotificationService(self.session).notify(
            "New support ticket",
            f"{ticket.user_name}: {ticket.subject}",
            type="warning" if ticket.priority in ("high", "urgent") else "info",
            link=f"/support/{ticket.id}",
        )
        return ticket

    def list(self, tenant=None, search=None, type=None, priority=None, status=None, sort_by="newest",
             page=1, limit=20):
        if tenant:
            tenant = resolve_tenant(tenant)
        if type:
            _check_choice(type, models.TICKET_TYPES, "type")
        if priority:
            _check_choice(priority, models.TICKET_PRIORITIES, "priority")
        if status:
            _check_choice(status, models.TICKET_STATUSES, "status")
        _check_choice(sort_by, ("newest", "oldest", "priority"), "sortBy")
        page, limit = clamp(page, limit)
        items, total = self.repo.search(tenant, search, type, priority, status, sort_by,
                                        offset_for(page, limit), limit)
        return items, pagination_meta(page, limit, total)

    def get(self, ticket_id: int) -> Optional[models.SupportMessage]:
        return self.repo.get(ticket_id)

    def update_status(self, ticket_id: int, status: str) -> Optional[models.SupportMessage]:
        _check_choice(status, models.TICKET_STATUSES, "status")
        ticket = self.repo.get(ticket_id)
        if not ticket:
            return None
        ticket.status = status
        ticket.updated_at = utcnow()
        return self.repo.save(ticket)

    def delete(self, ticket_id: int) -> Optional[models.SupportMessage]:
        ticket = self.repo.get(ticket_id)
        if ticket:
            self.repo.delete(ticket)
        return ticket

    def reply(self, ticket_id: int, message: str, subject: Optional[str], admin: models.User):
        """E-mail a reply to the ticket author and record it on the ticket.

        Raises `DeliveryError` (and records nothing) when the mail fails.
        """
        ticket = self.repo.get(ticket_id)
        if not ticket:
            return None
        subject = subject or f"Re: {ticket.subject}"
        if not mailer.send_email(ticket.user_email, subject, message):
            raise DeliveryError("Failed to send reply email")
        now = utcnow()
        ticket.replies = list(ticket.replies or []) + [{
            "subject": subject,
            "message": message,
            "repliedBy": admin.email,
            "repliedAt": now.isoformat(),
        }]
        ticket.last_replied_at = now
        if ticket.status == "new":
            ticket.status = "in_progress"
        ticket.updated_at = now
        logger.info("ticket %s replied by %s", ticket.id, admin.id)
        return self.repo.save(ticket)

    def stats(self, tenant: Optional[str] = None, now: Optional[datetime] = None) -> dict:
        if tenant:
            tenant = resolve_tenant(tenant)
        now = now or utcnow()

        def filled(keys, counts):
            out = {k: 0 for k in keys}
            out.update(counts)
            return out

        return {
            "total": self.repo.count(tenant),
            "recent": self.repo.count(tenant, since=now - timedelta(days=7)),
            "byStatus": filled(models.TICKET_STATUSES, self.repo.counts_by("status", tenant)),
            "byPriority": filled(models.TICKET_PRIORITIES, self.repo.counts_by("priority", tenant)),
            "byType": filled(models.TICKET_TYPES, self.repo.counts_by("type", tenant)),
        }


# ---------------------------------------------------------- notifications

class NotificationService:
    """In-panel notifications for one admin or broadcast to all."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.NotificationRepository(session)

    def notify(self, title: str, message: str, type: str = "info", link: Optional[str] = None,
               user_id: Optional[int] = None) -> models.Notification:
        _check_choice(type, models.NOTIFICATION_TYPES, "type")
        if user_id is not None and not repositories.UserRepository(self.session).get(user_id):
            raise ValueError(f"user not found: {user_id}")
        n = models.Notification(title=title, message=message, type=type, link=link, user_id=user_id)
        return self.repo.save(n)

    def list(self, user: models.User, unread_only: bool = False) -> List[models.Notification]:
        return self.repo.list_for_user(user.id, unread_only)

    def unread_count(self, user: models.User) -> int:
        return self.repo.unread_count(user.id)

    def mark_all_read(self, user: models.User) -> int:
        return self.repo.mark_all_read(user.id)

    def _visible(self, notification_id: int, user: models.User) -> Optional[models.Notification]:
        n = self.repo.get(notification_id)
        if n is None or (n.user_id is not None and n.user_id != user.id):
            return None
        return n

    def mark_read(self, notification_id: int, user: models.User) -> Optional[models.Notification]:
        n = self._visible(notification_id, user)
        if n is None:
            return None
        n.is_read = True
        return self.repo.save(n)

    def delete(self, notification_id: int, user: models.User) -> Optional[models.Notification]:
        n = self._visible(notification_id, user)
        if n is not None:
            self.repo.delete(n)
        return n
