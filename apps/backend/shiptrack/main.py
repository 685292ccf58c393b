from __future__ import annotations

import logging
import os
import time
import uuid
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shiptrack.api.auth import router as auth_router
from shiptrack.api.branches import router as branches_router
from shiptrack.api.events import router as events_router
from shiptrack.api.rates import router as rates_router
from shiptrack.api.shipments import router as shipments_router
from shiptrack.api.updates import router as updates_router
from shiptrack.api.users import router as users_router
from shiptrack.api.ws import router as ws_router
from shiptrack.errors import ShiptrackError
from shiptrack.logging_utils import REQUEST_ID_CTX, configure_logging
from shiptrack.runtime import build_runtime


logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")


def cors_origins() -> list[str]:
    """Browser origins allowed to call the API (SHIPTRACK_CORS_ORIGINS, comma separated)."""
    origins = [o.strip() for o in os.getenv("SHIPTRACK_CORS_ORIGINS", "").split(",") if o.strip()]
    return origins or list(DEFAULT_CORS_ORIGINS)


def create_app(db_path: Optional[Path] = None) -> FastAPI:
    load_dotenv()
    configure_logging()

    app = FastAPI(title="Shiptrack Backend", version="0.1.0")
    app.state.runtime = build_runtime(db_path)

    @app.middleware("http")
    async def request_log_middleware(request, call_next):  # type: ignore[no-untyped-def]
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex
        token = REQUEST_ID_CTX.set(rid)
        start = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = rid
            duration_ms = (time.perf_counter() - start) * 1000.0
            # Set by `current_account` once the bearer token checks out; absent on public routes.
            account_id = getattr(request.state, "account_id", None)
            logger.info(
                "HTTP done method=%s path=%s status=%s account=%s duration_ms=%.1f",
                request.method,
                request.url.path,
                response.status_code,
                account_id if account_id is not None else "-",
                duration_ms,
            )
            return response
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000.0
            logger.exception(
                "HTTP request failed method=%s path=%s query=%s duration_ms=%.1f",
                request.method,
                request.url.path,
                request.url.query,
                duration_ms,
            )
            raise
        finally:
            REQUEST_ID_CTX.reset(token)

    @app.exception_handler(ShiptrackError)
    async def shiptrack_error_handler(request: Request, exc: ShiptrackError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error("request error path=%s code=%s msg=%s", request.url.path, exc.code, exc.message)
        else:
            logger.info("request rejected path=%s code=%s msg=%s", request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=exc.http_status, content={"msg": exc.message, "code": exc.code})

    @app.get("/healthz")
    def healthz() -> dict:
        rt = app.state.runtime
        return {
            "status": "ok",
            "connections": rt.gateway.connection_count,
            "topics": rt.registry.topic_count,
        }

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(branches_router)
    app.include_router(rates_router)
    app.include_router(shipments_router)
    app.include_router(updates_router)
    app.include_router(events_router)
    app.include_router(ws_router)

    return app
