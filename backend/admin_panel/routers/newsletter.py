"""Newsletter endpoints.

`router` holds the public subscribe/unsubscribe calls; `admin_router`
the subscriber administration mounted under `/api/admin/newsletter`.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlmodel import Session

from .. import models, services
from ..auth import require_admin
from ..database import get_session
from ..schemas import BulkDeleteIn, SubscribeIn
from ..serializers import subscriber_out
from .common import ensure_found

router = APIRouter()
admin_router = APIRouter()
logger = logging.getLogger("admin_panel.newsletter")

_SUBSCRIBE_MESSAGES = {
    "subscribed": "Subscribed successfully",
    "resubscribed": "Subscription reactivated",
    "already_subscribed": "Email is already subscribed",
}


@router.post("/subscribe")
def subscribe(payload: SubscribeIn, response: Response, db: Session = Depends(get_session)):
    """Idempotent subscribe; a new subscription answers 201, repeats 200."""
    try:
        sub, outcome = services.NewsletterService(db).subscribe(payload.email, payload.tenant, payload.source)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if outcome == "subscribed":
        response.status_code = 201
    return {"msg": _SUBSCRIBE_MESSAGES[outcome], "subscriber": subscriber_out(sub)}


@router.post("/unsubscribe")
def unsubscribe(payload: SubscribeIn, db: Session = Depends(get_session)):
    try:
        sub = services.NewsletterService(db).unsubscribe(payload.email, payload.tenant)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    ensure_found(sub, "Subscriber not found")
    return {"msg": "Unsubscribed successfully"}


@admin_router.get("")
def list_subscribers(
    search: Optional[str] = None,
    tenant: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_admin),
):
    try:
        subs, meta = services.NewsletterService(db).list(tenant, search, page, limit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"subscribers": [subscriber_out(s) for s in subs], "pagination": meta}


@admin_router.post("", status_code=201)
def add_subscriber(payload: SubscribeIn, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    try:
        sub = services.NewsletterService(db).add(payload.email, payload.tenant, payload.source or "admin")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"msg": "Subscriber added successfully", "subscriber": subscriber_out(sub)}


@admin_router.get("/stats")
def subscriber_stats(
    tenant: Optional[str] = None,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_admin),
):
    try:
        stats = services.NewsletterService(db).stats(tenant)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"stats": stats}


@admin_router.get("/export")
def export_subscribers(
    tenant: Optional[str] = None,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_admin),
):
    try:
        body = services.NewsletterService(db).export_csv(tenant)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="newsletter-subscribers.csv"'},
    )


@admin_router.delete("")
def bulk_delete_subscribers(
    payload: BulkDeleteIn,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_admin),
):
    try:
        deleted = services.NewsletterService(db).bulk_delete(payload.ids)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("bulk delete subscribers count=%s by=%s", deleted, user.id)
    return {"msg": f"{deleted} subscriber(s) deleted", "deleted": deleted}


@admin_router.delete("/{subscriber_id}")
def delete_subscriber(subscriber_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    ensure_found(services.NewsletterService(db).delete(subscriber_id), "Subscriber not found")
    return {"msg": "Subscriber deleted successfully"}
