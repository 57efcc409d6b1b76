"""In-panel notifications of the logged-in admin (own and broadcast)."""

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models, services
from ..auth import get_current_user
from ..database import get_session
from ..schemas import NotificationIn
from ..serializers import notification_out
from .common import ensure_found

router = APIRouter()


@router.get("")
def list_notifications(unread: bool = False, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    svc = services.NotificationService(db)
    items = svc.list(user, unread_only=unread)
    return {"notifications": [notification_out(n) for n in items], "unreadCount": svc.unread_count(user)}


@router.get("/unread-count")
def unread_count(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return {"count": services.NotificationService(db).unread_count(user)}


@router.put("/mark-all-read")
def mark_all_read(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    updated = services.NotificationService(db).mark_all_read(user)
    return {"msg": "All notifications marked as read", "updated": updated}


@router.post("", status_code=201)
def create_notification(
    payload: NotificationIn,
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    try:
        n = services.NotificationService(db).notify(
            payload.title, payload.message, type=payload.type, link=payload.link, user_id=payload.user_id
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"msg": "Notification created", "notification": notification_out(n)}


@router.put("/{notification_id}/read")
def mark_read(notification_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    n = ensure_found(services.NotificationService(db).mark_read(notification_id, user), "Notification not found")
    return {"msg": "Notification marked as read", "notification": notification_out(n)}


@router.delete("/{notification_id}")
def delete_notification(notification_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    ensure_found(services.NotificationService(db).delete(notification_id, user), "Notification not found")
    return {"msg": "Notification deleted"}
