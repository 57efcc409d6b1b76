"""Support ticket endpoints.

Customers submit tickets through `router` (`/api/support`); admins triage
and answer them through `admin_router` (`/api/admin/support`).
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from .. import models, services
from ..auth import require_admin
from ..database import get_session
from ..schemas import ReplyIn, StatusIn, SupportMessageIn
from ..serializers import ticket_out
from .common import ensure_found

router = APIRouter()
admin_router = APIRouter()


@router.post("/messages", status_code=201)
def submit_message(payload: SupportMessageIn, db: Session = Depends(get_session)):
    try:
        ticket = services.SupportService(db).submit(payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"msg": "Support message submitted successfully", "ticket": ticket_out(ticket)}


@admin_router.get("/messages")
def list_messages(
    search: Optional[str] = None,
    type: Optional[str] = None,
    priority: Optional[str] = None,
    status: Optional[str] = None,
    sort_by: str = Query(default="newest", alias="sortBy"),
    tenant: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_admin),
):
    try:
        tickets, meta = services.SupportService(db).list(tenant, search, type, priority, status, sort_by, page, limit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"messages": [ticket_out(t) for t in tickets], "pagination": meta}


@admin_router.get("/stats")
def ticket_stats(tenant: Optional[str] = None, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    try:
        stats = services.SupportService(db).stats(tenant)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"stats": stats}


@admin_router.get("/messages/{ticket_id}")
def get_message(ticket_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    ticket = ensure_found(services.SupportService(db).get(ticket_id), "Support message not found")
    return {"ticket": ticket_out(ticket)}


@admin_router.patch("/messages/{ticket_id}/status")
def update_message_status(
    ticket_id: int,
    payload: StatusIn,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_admin),
):
    try:
        ticket = services.SupportService(db).update_status(ticket_id, payload.status)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    ensure_found(ticket, "Support message not found")
    return {"msg": "Status updated successfully", "ticket": ticket_out(ticket)}


@admin_router.post("/messages/{ticket_id}/reply")
def reply_to_message(
    ticket_id: int,
    payload: ReplyIn,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_admin),
):
    """E-mail a reply to the ticket author; 502 when the mail cannot be sent."""
    try:
        ticket = services.SupportService(db).reply(ticket_id, payload.message, payload.subject, user)
    except services.DeliveryError as e:
        raise HTTPException(status_code=502, detail=str(e))
    ensure_found(ticket, "Support message not found")
    return {"message": "Reply sent successfully", "ticket": ticket_out(ticket)}


@admin_router.delete("/messages/{ticket_id}")
def delete_message(ticket_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    ensure_found(services.SupportService(db).delete(ticket_id), "Support message not found")
    return {"msg": "Support message deleted successfully"}
