"""API routers of the admin panel backend.

- auth: login, OTP verification, registration, session
- admin: dashboards and admin account management
- blogs: public and admin blog endpoints
- newsletter: subscribe/unsubscribe and subscriber administration
- payments: payment records and revenue statistics
- pricing: public pricing table and plan administration
- support: ticket intake, triage and replies
- notifications: in-panel notifications
"""

from . import admin, auth, blogs, newsletter, notifications, payments, pricing, support

__all__ = [
    "admin",
    "auth",
    "blogs",
    "newsletter",
    "notifications",
    "payments",
    "pricing",
    "support",
]
