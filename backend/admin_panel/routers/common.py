"""Small helpers shared by the routers."""

from fastapi import HTTPException, Request

from ..config import settings


def client_ip(request: Request) -> str:
    """Client address; the first `X-Forwarded-For` hop is used only when `TRUST_PROXY` is set."""
    if settings.TRUST_PROXY:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def ensure_found(obj, detail: str):
    if obj is None:
        raise HTTPException(status_code=404, detail=detail)
    return obj
