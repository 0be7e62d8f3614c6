"""FastAPI entrypoint for the delivery marketplace core."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.errors import EXPECTED_OUTCOMES, DomainError
from app.core.logging import configure_logging
from app.db.base import Base
from app.db.seed import ensure_admin_user
from app.db import session as db_session

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)
app.include_router(api_router, prefix="/api/v1")


@app.exception_handler(DomainError)
async def handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
    """Render service-layer errors as ``{"detail", "code"}`` responses."""
    if isinstance(exc, EXPECTED_OUTCOMES):
        logger.info("[API] %s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    else:
        logger.warning("[API] %s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.on_event("startup")
def startup() -> None:
    Base.metadata.create_all(bind=db_session.engine)
    with db_session.SessionLocal() as session:
        admin_present = ensure_admin_user(session)
        logger.info("[BOOTSTRAP] admin present: %s", "yes" if admin_present else "no")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "env": settings.app_env}
