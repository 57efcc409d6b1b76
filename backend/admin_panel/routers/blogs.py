"""Blog endpoints. Reads are public; anonymous callers only see published posts."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from .. import models, services
from ..auth import get_optional_user, require_admin
from ..database import get_session
from ..schemas import BlogIn
from ..serializers import blog_out
from .common import ensure_found

router = APIRouter()


def _is_admin(user: Optional[models.User]) -> bool:
    return user is not None and user.role in models.VALID_ROLES


@router.get("")
def list_blogs(
    tenant: Optional[str] = None,
    status: Optional[str] = None,
    featured: Optional[bool] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_session),
    user: Optional[models.User] = Depends(get_optional_user),
):
    try:
        blogs, meta = services.BlogService(db).list(
            tenant, status, featured, tag, search, page, limit, include_drafts=_is_admin(user)
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"blogs": [blog_out(b) for b in blogs], "pagination": meta}


@router.get("/{key}")
def get_blog(key: str, db: Session = Depends(get_session), user: Optional[models.User] = Depends(get_optional_user)):
    """Fetch one post by numeric id or slug."""
    blog = ensure_found(services.BlogService(db).get(key, include_drafts=_is_admin(user)), "Blog not found")
    return {"blog": blog_out(blog)}


@router.post("", status_code=201)
def create_blog(payload: BlogIn, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    data = payload.model_dump(exclude_unset=True)
    data.setdefault("author", user.name)
    try:
        blog = services.BlogService(db).create(data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"msg": "Blog created successfully", "blog": blog_out(blog)}


@router.put("/{blog_id}")
def update_blog(
    blog_id: int,
    payload: BlogIn,
    db: Session = Depends(get_session),
    user: models.User = Depends(require_admin),
):
    try:
        blog = services.BlogService(db).update(blog_id, payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    ensure_found(blog, "Blog not found")
    return {"msg": "Blog updated successfully", "blog": blog_out(blog)}


@router.delete("/{blog_id}")
def delete_blog(blog_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_admin)):
    ensure_found(services.BlogService(db).delete(blog_id), "Blog not found")
    return {"msg": "Blog deleted successfully"}
