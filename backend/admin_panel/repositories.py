"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (admin users,
blogs, subscribers, payments, pricing plans, support tickets,
notifications). Repositories return SQLModel objects and perform
commits/refreshes where appropriate. List queries return a
`(items, total)` tuple so callers can build pagination metadata.
"""

import json
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import String, case, cast, func, or_
from sqlmodel import Session, select

from . import models


class BaseRepository:
    """Shared persistence helpers; subclasses set `model`."""
    model = None

    def __init__(self, session: Session):
        self.session = session

    def get(self, obj_id: int):
        """Fetch a row by primary key or `None`."""
        return self.session.get(self.model, obj_id)

    def save(self, obj):
        """Insert or update `obj` and return the refreshed instance."""
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        return obj

    def delete(self, obj) -> None:
        self.session.delete(obj)
        self.session.commit()

    def _page(self, stmt, offset: int, limit: int) -> Tuple[List, int]:
        total = self.session.exec(select(func.count()).select_from(stmt.subquery())).one()
        items = self.session.exec(stmt.offset(offset).limit(limit)).all()
        return list(items), int(total or 0)

    def _count(self, *criteria) -> int:
        stmt = select(func.count(self.model.id))
        for c in criteria:
            if c is not None:
                stmt = stmt.where(c)
        return int(self.session.exec(stmt).one() or 0)

    def _group_counts(self, column, *criteria) -> Dict[str, int]:
        stmt = select(column, func.count(self.model.id)).group_by(column)
        for c in criteria:
            if c is not None:
                stmt = stmt.where(c)
        return {key: int(n) for key, n in self.session.exec(stmt).all()}


def _tenant_filter(model, tenant: Optional[str]):
    return model.tenant == tenant if tenant else None


class UserRepository(BaseRepository):
    """CRUD operations for admin `User` accounts."""
    model = models.User

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        return self.save(user)

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by e-mail (case-insensitive) or `None`."""
        stmt = select(models.User).where(func.lower(models.User.email) == email.lower())
        return self.session.exec(stmt).first()

    def list(self, role: Optional[str] = None) -> List[models.User]:
        stmt = select(models.User).order_by(models.User.created_at.desc(), models.User.id.desc())
        if role:
            stmt = stmt.where(models.User.role == role)
        return list(self.session.exec(stmt).all())

    def count(self, role: Optional[str] = None) -> int:
        return self._count(models.User.role == role if role else None)


class BlogRepository(BaseRepository):
    """Queries for tenant blog posts."""
    model = models.Blog

    def get_by_slug(self, tenant: str, slug: str) -> Optional[models.Blog]:
        stmt = select(models.Blog).where(models.Blog.tenant == tenant, models.Blog.slug == slug)
        return self.session.exec(stmt).first()

    def find_by_slug(self, slug: str) -> Optional[models.Blog]:
        """Return the newest post with `slug` in any tenant."""
        stmt = select(models.Blog).where(models.Blog.slug == slug).order_by(models.Blog.id.desc())
        return self.session.exec(stmt).first()

    def slug_exists(self, tenant: str, slug: str, exclude_id: Optional[int] = None) -> bool:
        stmt = select(models.Blog.id).where(models.Blog.tenant == tenant, models.Blog.slug == slug)
        if exclude_id is not None:
            stmt = stmt.where(models.Blog.id != exclude_id)
        return self.session.exec(stmt).first() is not None

    def search(self, tenant: Optional[str] = None, status: Optional[str] = None, featured: Optional[bool] = None,
               tag: Optional[str] = None, search: Optional[str] = None, offset: int = 0, limit: int = 20):
        """Filter posts, newest first.

        A tag matches only as a whole JSON string element, case-sensitively.
        """
        stmt = select(models.Blog)
        if tenant:
            stmt = stmt.where(models.Blog.tenant == tenant)
        if status:
            stmt = stmt.where(models.Blog.status == status)
        if featured is not None:
            stmt = stmt.where(models.Blog.featured == featured)
        if tag:
            stmt = stmt.where(func.instr(cast(models.Blog.tags, String), json.dumps(tag)) > 0)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(
                models.Blog.title.ilike(like),
                models.Blog.content.ilike(like),
                models.Blog.author.ilike(like),
                cast(models.Blog.tags, String).ilike(like),
            ))
        stmt = stmt.order_by(models.Blog.created_at.desc(), models.Blog.id.desc())
        return self._page(stmt, offset, limit)

    def count(self, tenant: Optional[str] = None, status: Optional[str] = None) -> int:
        return self._count(_tenant_filter(models.Blog, tenant), models.Blog.status == status if status else None)


class SubscriberRepository(BaseRepository):
    """Queries for newsletter subscribers."""
    model = models.Subscriber

    def get_by_email(self, tenant: str, email: str) -> Optional[models.Subscriber]:
        stmt = select(models.Subscriber).where(
            models.Subscriber.tenant == tenant,
            func.lower(models.Subscriber.email) == email.lower(),
        )
        return self.session.exec(stmt).first()

    def search(self, tenant: Optional[str] = None, search: Optional[str] = None,
               active: Optional[bool] = None, offset: int = 0, limit: int = 20):
        stmt = select(models.Subscriber)
        if tenant:
            stmt = stmt.where(models.Subscriber.tenant == tenant)
        if search:
            stmt = stmt.where(models.Subscriber.email.ilike(f"%{search}%"))
        if active is not None:
            stmt = stmt.where(models.Subscriber.is_active == active)
        stmt = stmt.order_by(models.Subscriber.created_at.desc(), models.Subscriber.id.desc())
        return self._page(stmt, offset, limit)

    def list_all(self, tenant: Optional[str] = None) -> List[models.Subscriber]:
        stmt = select(models.Subscriber).order_by(models.Subscriber.created_at.asc(), models.Subscriber.id.asc())
        if tenant:
            stmt = stmt.where(models.Subscriber.tenant == tenant)
        return list(self.session.exec(stmt).all())

    def count(self, tenant: Optional[str] = None, active: Optional[bool] = None,
              since: Optional[datetime] = None) -> int:
        return self._count(
            _tenant_filter(models.Subscriber, tenant),
            models.Subscriber.is_active == active if active is not None else None,
            models.Subscriber.created_at >= since if since is not None else None,
        )

    def delete_many(self, ids: Iterable[int]) -> int:
        """Delete subscribers by id and return how many existed."""
        rows = self.session.exec(select(models.Subscriber).where(models.Subscriber.id.in_(list(ids)))).all()
        for row in rows:
            self.session.delete(row)
        self.session.commit()
        return len(rows)


class PaymentRepository(BaseRepository):
    """Queries and aggregates over payment records."""
    model = models.Payment

    def get_by_transaction_id(self, transaction_id: str) -> Optional[models.Payment]:
        stmt = select(models.Payment).where(models.Payment.transaction_id == transaction_id)
        return self.session.exec(stmt).first()

    def search(self, tenant: Optional[str] = None, search: Optional[str] = None, status: Optional[str] = None,
               start: Optional[datetime] = None, end: Optional[datetime] = None, offset: int = 0, limit: int = 20):
        """Filter payments; `end` is exclusive, callers pass the day after the last included date."""
        stmt = select(models.Payment)
        if tenant:
            stmt = stmt.where(models.Payment.tenant == tenant)
        if status:
            stmt = stmt.where(models.Payment.status == status)
        if start is not None:
            stmt = stmt.where(models.Payment.created_at >= start)
        if end is not None:
            stmt = stmt.where(models.Payment.created_at < end)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(
                models.Payment.transaction_id.ilike(like),
                models.Payment.customer_name.ilike(like),
                models.Payment.customer_email.ilike(like),
                models.Payment.plan_name.ilike(like),
            ))
        stmt = stmt.order_by(models.Payment.created_at.desc(), models.Payment.id.desc())
        return self._page(stmt, offset, limit)

    def revenue(self, tenant: Optional[str] = None, since: Optional[datetime] = None) -> float:
        """Sum of `completed` payment amounts."""
        stmt = select(func.coalesce(func.sum(models.Payment.amount), 0.0)).where(models.Payment.status == "completed")
        if tenant:
            stmt = stmt.where(models.Payment.tenant == tenant)
        if since is not None:
            stmt = stmt.where(models.Payment.created_at >= since)
        return float(self.session.exec(stmt).one() or 0.0)

    def status_counts(self, tenant: Optional[str] = None) -> Dict[str, int]:
        return self._group_counts(models.Payment.status, _tenant_filter(models.Payment, tenant))

    def count(self, tenant: Optional[str] = None) -> int:
        return self._count(_tenant_filter(models.Payment, tenant))


class PricingPlanRepository(BaseRepository):
    """Queries for pricing plans."""
    model = models.PricingPlan

    def list(self, tenant: Optional[str] = None, active_only: bool = False) -> List[models.PricingPlan]:
        stmt = select(models.PricingPlan).order_by(models.PricingPlan.sort_order.asc(), models.PricingPlan.id.asc())
        if tenant:
            stmt = stmt.where(models.PricingPlan.tenant == tenant)
        if active_only:
            stmt = stmt.where(models.PricingPlan.is_active == True)  # noqa: E712
        return list(self.session.exec(stmt).all())

    def count(self, tenant: Optional[str] = None) -> int:
        return self._count(_tenant_filter(models.PricingPlan, tenant))


_PRIORITY_RANK = {"urgent": 0, "high": 1, "medium": 2, "low": 3}


class SupportMessageRepository(BaseRepository):
    """Queries and aggregates over support tickets."""
    model = models.SupportMessage

    def search(self, tenant: Optional[str] = None, search: Optional[str] = None, type: Optional[str] = None,
               priority: Optional[str] = None, status: Optional[str] = None, sort_by: str = "newest",
               offset: int = 0, limit: int = 20):
        M = models.SupportMessage
        stmt = select(M)
        if tenant:
            stmt = stmt.where(M.tenant == tenant)
        if type:
            stmt = stmt.where(M.type == type)
        if priority:
            stmt = stmt.where(M.priority == priority)
        if status:
            stmt = stmt.where(M.status == status)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(
                M.subject.ilike(like), M.message.ilike(like), M.user_name.ilike(like), M.user_email.ilike(like),
            ))
        if sort_by == "oldest":
            stmt = stmt.order_by(M.created_at.asc(), M.id.asc())
        elif sort_by == "priority":
            rank = case(_PRIORITY_RANK, value=M.priority, else_=len(_PRIORITY_RANK))
            stmt = stmt.order_by(rank, M.created_at.desc(), M.id.desc())
        else:
            stmt = stmt.order_by(M.created_at.desc(), M.id.desc())
        return self._page(stmt, offset, limit)

    def count(self, tenant: Optional[str] = None, since: Optional[datetime] = None,
              statuses: Optional[Iterable[str]] = None) -> int:
        M = models.SupportMessage
        return self._count(
            _tenant_filter(M, tenant),
            M.created_at >= since if since is not None else None,
            M.status.in_(list(statuses)) if statuses else None,
        )

    def counts_by(self, field: str, tenant: Optional[str] = None) -> Dict[str, int]:
        column = getattr(models.SupportMessage, field)
        return self._group_counts(column, _tenant_filter(models.SupportMessage, tenant))


class NotificationRepository(BaseRepository):
    """Notifications addressed to one admin or broadcast to all."""
    model = models.Notification

    def _visible_to(self, user_id: int):
        N = models.Notification
        return or_(N.user_id == user_id, N.user_id == None)  # noqa: E711

    def list_for_user(self, user_id: int, unread_only: bool = False, limit: int = 50) -> List[models.Notification]:
        N = models.Notification
        stmt = select(N).where(self._visible_to(user_id))
        if unread_only:
            stmt = stmt.where(N.is_read == False)  # noqa: E712
        stmt = stmt.order_by(N.created_at.desc(), N.id.desc()).limit(limit)
        return list(self.session.exec(stmt).all())

    def unread_count(self, user_id: int) -> int:
        return self._count(self._visible_to(user_id), models.Notification.is_read == False)  # noqa: E712

    def mark_all_read(self, user_id: int) -> int:
        rows = self.list_for_user(user_id, unread_only=True, limit=10_000)
        for row in rows:
            row.is_read = True
            self.session.add(row)
        self.session.commit()
        return len(rows)

    def delete_for_user(self, user_id: int) -> None:
        rows = self.session.exec(select(models.Notification).where(models.Notification.user_id == user_id)).all()
        for row in rows:
            self.session.delete(row)
        self.session.commit()
