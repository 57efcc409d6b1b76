"""Dashboards and admin account management.

Reading accounts is open to every admin; any change to an account
requires a superadmin.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models, services
from ..auth import require_admin, require_superadmin
from ..database import get_session
from ..schemas import RegisterIn, UserUpdateIn
from ..serializers import user_out
from .common import ensure_found

router = APIRouter()


def _summary(db: Session, user: models.User, tenant: Optional[str]) -> dict:
    try:
        return services.AdminService(db).summary(user, tenant)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/super-dashboard")
def super_dashboard(
    tenant: Optional[str] = None,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_superadmin),
):
    return {"msg": "Super Admin Panel", "user": user_out(user), "summary": _summary(db, user, tenant)}


@router.get("/dashboard")
def dashboard(
    tenant: Optional[str] = None,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_admin),
):
    return {"msg": "Admin Panel Access", "user": user_out(user), "summary": _summary(db, user, tenant)}


@router.post("/add-admin", status_code=201)
def add_admin(payload: RegisterIn, db: Session = Depends(get_session), user: models.User = Depends(require_superadmin)):
    try:
        created = services.AdminService(db).add_admin(payload.name, payload.email, payload.password, payload.role, user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"msg": "Admin created successfully", "user": user_out(created)}


@router.get("/users")
def list_users(role: Optional[str] = None, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    users = services.AdminService(db).list_users(role)
    return {"msg": "Users fetched successfully", "users": [user_out(u) for u in users]}


@router.get("/users/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    found = ensure_found(services.AdminService(db).get_user(user_id), "User not found")
    return {"user": user_out(found)}


@router.put("/users/{user_id}")
def update_user(
    user_id: int,
    payload: UserUpdateIn,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_superadmin),
):
    try:
        updated = services.AdminService(db).update_user(user_id, payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    ensure_found(updated, "User not found")
    return {"msg": "User updated successfully", "user": user_out(updated)}


@router.delete("/users/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_superadmin)):
    try:
        deleted = services.AdminService(db).delete_user(user_id, user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    ensure_found(deleted, "User not found")
    return {"msg": "User deleted successfully"}
