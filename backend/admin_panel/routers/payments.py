"""Payment records, mounted under `/api/admin/payments` (admins only)."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from .. import models, services
from ..auth import require_admin
from ..database import get_session
from ..schemas import PaymentIn, StatusIn
from ..serializers import payment_out
from .common import ensure_found

router = APIRouter()
logger = logging.getLogger("admin_panel.payments")


@router.get("")
def list_payments(
    search: Optional[str] = None,
    status: Optional[str] = None,
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    tenant: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_admin),
):
    try:
        payments, meta = services.PaymentService(db).list(tenant, search, status, start_date, end_date, page, limit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"payments": [payment_out(p) for p in payments], "pagination": meta}


@router.post("", status_code=201)
def create_payment(payload: PaymentIn, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    try:
        payment = services.PaymentService(db).create(payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("payment recorded %s by=%s", payment.transaction_id, user.id)
    return {"msg": "Payment recorded successfully", "payment": payment_out(payment)}


@router.get("/stats")
def payment_stats(tenant: Optional[str] = None, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    try:
        stats = services.PaymentService(db).stats(tenant)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"stats": stats}


@router.get("/{payment_id}")
def get_payment(payment_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    payment = ensure_found(services.PaymentService(db).get(payment_id), "Payment not found")
    return {"payment": payment_out(payment)}


@router.patch("/{payment_id}/status")
def update_payment_status(
    payment_id: int,
    payload: StatusIn,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_admin),
):
    try:
        payment = services.PaymentService(db).update_status(payment_id, payload.status)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    ensure_found(payment, "Payment not found")
    return {"msg": "Payment status updated", "payment": payment_out(payment)}
