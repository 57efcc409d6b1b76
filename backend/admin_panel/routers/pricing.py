"""Pricing endpoints.

`router` serves the public pricing table (`/api/pricing`); `admin_router`
the plan administration under `/api/admin/pricing`.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models, services
from ..auth import require_admin
from ..database import get_session
from ..schemas import PricingBulkIn, PricingPlanIn
from ..serializers import plan_out
from .common import ensure_found

router = APIRouter()
admin_router = APIRouter()
logger = logging.getLogger("admin_panel.pricing")


def _plan_fields(plan: PricingPlanIn) -> dict:
    """Explicitly sent plan fields; flat `max*` quotas go under `quotas`."""
    data = {name: getattr(plan, name) for name in plan.model_fields_set if name in PricingPlanIn.model_fields}
    if plan.features is not None:
        data["features"] = [f.model_dump() for f in plan.features]
    quotas = {
        k: int(v) for k, v in (plan.model_extra or {}).items()
        if k.startswith("max") and isinstance(v, (int, float)) and not isinstance(v, bool)
    }
    if quotas:
        data["quotas"] = quotas
    return data


@router.get("")
def public_plans(tenant: Optional[str] = None, db: Session = Depends(get_session)):
    try:
        plans = services.PricingService(db).list(services.resolve_tenant(tenant), active_only=True)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"plans": [plan_out(p) for p in plans]}


@admin_router.get("")
def list_plans(tenant: Optional[str] = None, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    try:
        plans = services.PricingService(db).list(tenant)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"plans": [plan_out(p) for p in plans]}


@admin_router.post("", status_code=201)
def create_plan(payload: PricingPlanIn, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    try:
        plan = services.PricingService(db).create(_plan_fields(payload))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"msg": "Pricing plan created successfully", "plan": plan_out(plan)}


@admin_router.put("")
def save_plans(payload: PricingBulkIn, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    """Replace-or-create the listed plans in one transaction."""
    try:
        plans = services.PricingService(db).bulk_save([_plan_fields(p) for p in payload.plans], payload.tenant)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("pricing table saved by=%s", user.id)
    return {"msg": "Pricing plans saved successfully", "plans": [plan_out(p) for p in plans]}


@admin_router.post("/initialize-defaults", status_code=201)
def initialize_defaults(
    tenant: Optional[str] = None,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_admin),
):
    try:
        tenant = services.resolve_tenant(tenant)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    try:
        plans = services.PricingService(db).initialize_defaults(tenant)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"msg": "Default pricing plans created", "plans": [plan_out(p) for p in plans]}


@admin_router.put("/{plan_id}")
def update_plan(
    plan_id: int,
    payload: PricingPlanIn,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_admin),
):
    try:
        plan = services.PricingService(db).update(plan_id, _plan_fields(payload))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    ensure_found(plan, "Pricing plan not found")
    return {"msg": "Pricing plan updated successfully", "plan": plan_out(plan)}


@admin_router.delete("/{plan_id}")
def delete_plan(plan_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    ensure_found(services.PricingService(db).delete(plan_id), "Pricing plan not found")
    return {"msg": "Pricing plan deleted successfully"}


@admin_router.patch("/{plan_id}/toggle-status")
def toggle_plan(plan_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    plan = ensure_found(services.PricingService(db).toggle_status(plan_id), "Pricing plan not found")
    state = "activated" if plan.is_active else "deactivated"
    return {"msg": f"Pricing plan {state}", "plan": plan_out(plan)}
