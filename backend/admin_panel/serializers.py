"""Convert SQLModel rows into the camelCase JSON the admin panel reads.

Every record exposes its primary key as both `id` and `_id`. Secrets
(password and OTP hashes) are never part of any output.
"""

from datetime import datetime
from typing import Optional

from . import models


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def user_out(u: models.User) -> dict:
    return {
        "id": u.id,
        "_id": u.id,
        "name": u.name,
        "email": u.email,
        "role": u.role,
        "lastLoginAt": _ts(u.last_login_at),
        "createdAt": _ts(u.created_at),
    }


def blog_out(b: models.Blog) -> dict:
    return {
        "id": b.id,
        "_id": b.id,
        "tenant": b.tenant,
        "title": b.title,
        "slug": b.slug,
        "excerpt": b.excerpt,
        "content": b.content,
        "author": b.author,
        "tags": list(b.tags or []),
        "status": b.status,
        "featured": b.featured,
        "coverImage": b.cover_image,
        "readTime": b.read_time,
        "publishedAt": _ts(b.published_at),
        "createdAt": _ts(b.created_at),
        "updatedAt": _ts(b.updated_at),
    }


def subscriber_out(s: models.Subscriber) -> dict:
    return {
        "id": s.id,
        "_id": s.id,
        "tenant": s.tenant,
        "email": s.email,
        "source": s.source,
        "isActive": s.is_active,
        "status": "active" if s.is_active else "unsubscribed",
        "subscribedAt": _ts(s.created_at),
        "createdAt": _ts(s.created_at),
    }


def payment_out(p: models.Payment) -> dict:
    return {
        "id": p.id,
        "_id": p.id,
        "tenant": p.tenant,
        "transactionId": p.transaction_id,
        "customerName": p.customer_name,
        "customerEmail": p.customer_email,
        "planName": p.plan_name,
        "amount": p.amount,
        "currency": p.currency,
        "billingCycle": p.billing_cycle,
        "paymentMethod": p.payment_method,
        "status": p.status,
        "autoRenewal": p.auto_renewal,
        "renewalStatus": p.renewal_status,
        "expiryDate": _ts(p.expiry_date),
        "createdAt": _ts(p.created_at),
        "updatedAt": _ts(p.updated_at),
    }


def plan_out(p: models.PricingPlan) -> dict:
    out = {
        "id": p.id,
        "_id": p.id,
        "tenant": p.tenant,
        "name": p.name,
        "description": p.description,
        "monthlyUSD": p.monthly_usd,
        "annualUSD": p.annual_usd,
        "limits": dict(p.limits or {}),
        "features": list(p.features or []),
        "highlight": p.highlight,
        "custom": p.custom,
        "isFree": p.is_free,
        "includesTax": p.includes_tax,
        "isActive": p.is_active,
        "sortOrder": p.sort_order,
        "createdAt": _ts(p.created_at),
        "updatedAt": _ts(p.updated_at),
    }
    # flatten quotas so panels reading e.g. `maxAuditsPerMonth` keep working
    for key, value in (p.limits or {}).items():
        out.setdefault(key, value)
    return out


def ticket_out(t: models.SupportMessage) -> dict:
    return {
        "id": t.id,
        "_id": t.id,
        "tenant": t.tenant,
        "userName": t.user_name,
        "userEmail": t.user_email,
        "user": {"name": t.user_name, "email": t.user_email},
        "subject": t.subject,
        "message": t.message,
        "type": t.type,
        "priority": t.priority,
        "status": t.status,
        "replies": list(t.replies or []),
        "lastRepliedAt": _ts(t.last_replied_at),
        "createdAt": _ts(t.created_at),
        "updatedAt": _ts(t.updated_at),
    }


def notification_out(n: models.Notification) -> dict:
    return {
        "id": n.id,
        "_id": n.id,
        "userId": n.user_id,
        "title": n.title,
        "message": n.message,
        "type": n.type,
        "link": n.link,
        "isRead": n.is_read,
        "createdAt": _ts(n.created_at),
    }
