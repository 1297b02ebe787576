"""FastAPI entry point: middleware, error rendering, routers, health."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from time import perf_counter

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from marketplace.Core.config import get_settings
from marketplace.Auth.routes import router as auth_router
from marketplace.common.errors import register_error_handlers
from marketplace.features.ads.endpoints import router as ads_router
from marketplace.features.users.endpoints import router as users_router

_settings = get_settings()


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, _settings.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


configure_logging()

app = FastAPI(
    title=_settings.app_name,
    description="Backend API for Airsoft Marketplace",
    version=_settings.version,
)


# ------------------------
# CORS Setup
# ------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------
# Custom Middlewares
# ------------------------
@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    incoming = request.headers.get("X-Request-Id") or request.headers.get("X-Request-ID")
    req_id = incoming or str(uuid.uuid4())
    request.state.request_id = req_id
    logger = logging.getLogger("request")
    logger.info("request.start", extra={"request_id": req_id, "path": request.url.path, "method": request.method})
    response = await call_next(request)
    response.headers["X-Request-Id"] = req_id
    logger.info("request.end", extra={"request_id": req_id, "path": request.url.path, "status_code": response.status_code})
    return response


@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    t0 = perf_counter()
    resp = await call_next(request)
    dt = int((perf_counter() - t0) * 1000)
    logging.getLogger("timing").info("%s %s %dms %s", request.method, request.url.path, dt, resp.status_code)
    return resp


register_error_handlers(app)


# ------------------------
# Routers
# ------------------------
api_router = APIRouter(prefix="/api")
api_router.include_router(auth_router)
api_router.include_router(ads_router)
api_router.include_router(users_router)
app.include_router(api_router)


@app.get("/health", tags=["health"])
def health_check():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
