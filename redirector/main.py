from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from redirector.api.routers import accounts, auth, redirect, routes, ui
from redirector.domain.errors import RedirectorError
from redirector.infra import settings
from redirector.infra.audit import AuditMiddleware
from redirector.infra.log_config import configure_logging
from redirector.infra.redis_state import check_redis_ready
from redirector.services.health_service import HealthMonitor

logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    config = settings.get_settings()
    configure_logging(config.log_level)
    task: asyncio.Task[None] | None = None
    if config.health_targets:
        task = asyncio.create_task(HealthMonitor().run_forever())
        logger.info("health polling started for %d targets", len(config.health_targets))
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task


app = FastAPI(
    title="redirector",
    description="Multi-tenant short-link resolution and management.",
    version="0.1.0",
    lifespan=lifespan,
    # every single-segment path belongs to the tenant route table
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

app.add_middleware(AuditMiddleware)


@app.exception_handler(RedirectorError)
async def handle_redirector_error(_request: Request, exc: RedirectorError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request failed: %s", exc.message, exc_info=exc.__cause__)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = [str(item.get("msg", "invalid request")) for item in exc.errors()]
    return JSONResponse(status_code=400, content={"error": "; ".join(messages) or "invalid request"})


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    store_ok = settings.get_settings().store_backend == "memory" or check_redis_ready()
    checks = {"store": "ok" if store_ok else "fail"}
    if not store_ok:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}


app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(routes.router, prefix="/routes", tags=["routes"])
app.include_router(accounts.router, prefix="/accounts", tags=["accounts"])
app.include_router(ui.router, tags=["ui"])
# catch-all, must stay last
app.include_router(redirect.router, tags=["redirect"])
