"""FastAPI application entrypoint.

Builds the app, installs CORS and request-context middleware and mounts
the routers:

- /api/auth - login, OTP step, registration, session
- /api/admin - dashboards and admin accounts
- /api/blogs - blog posts
- /api/newsletter, /api/admin/newsletter - subscribers
- /api/admin/payments - payment records
- /api/pricing, /api/admin/pricing - pricing plans
- /api/support, /api/admin/support - support tickets
- /api/notifications - in-panel notifications
"""

import json
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .database import create_db_and_tables
from .routers import admin, auth, blogs, newsletter, notifications, payments, pricing, support

app = FastAPI(title="Multi-tenant Admin Panel API")
logger = logging.getLogger("admin_panel.api")
if not logging.getLogger().handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

origins = settings.ALLOWED_ORIGINS
if "*" in origins and settings.ENV != "dev":
    logger.warning("ignoring '*' in ALLOWED_ORIGINS outside dev")
    origins = [o for o in origins if o != "*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    context = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else "unknown",
    }
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception("request_failed %s", json.dumps(context, ensure_ascii=True))
        raise
    response.headers["X-Request-ID"] = req_id
    context["status_code"] = response.status_code
    context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info("request_done %s", json.dumps(context, ensure_ascii=True))
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """FastAPI's `{"detail"}` body, mirrored as `error` for the panel."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
app.include_router(blogs.router, prefix="/api/blogs", tags=["blogs"])
app.include_router(newsletter.router, prefix="/api/newsletter", tags=["newsletter"])
app.include_router(newsletter.admin_router, prefix="/api/admin/newsletter", tags=["newsletter"])
app.include_router(payments.router, prefix="/api/admin/payments", tags=["payments"])
app.include_router(pricing.router, prefix="/api/pricing", tags=["pricing"])
app.include_router(pricing.admin_router, prefix="/api/admin/pricing", tags=["pricing"])
app.include_router(support.router, prefix="/api/support", tags=["support"])
app.include_router(support.admin_router, prefix="/api/admin/support", tags=["support"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])


@app.get("/")
def root():
    return {"message": "API running"}


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
