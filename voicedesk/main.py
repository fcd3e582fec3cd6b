"""VoiceDesk FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from voicedesk.api.agents import router as agents_router
from voicedesk.api.auth import router as auth_router
from voicedesk.api.calls import router as calls_router
from voicedesk.api.health import router as health_router
from voicedesk.api.keys import router as keys_router
from voicedesk.api.resources import router as resources_router
from voicedesk.api.super_admin import router as super_admin_router
from voicedesk.api.tenant import router as tenant_router
from voicedesk.api.webhooks import router as webhooks_router
from voicedesk.config import settings
from voicedesk.errors import AppError
from voicedesk.provider.client import BolnaClient

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting VoiceDesk (%s)", settings.environment)
    yield
    await app.state.provider.aclose()
    logger.info("Provider client closed")


app = FastAPI(
    title="VoiceDesk - Multi-tenant voice agent console",
    description="Tenant auth, plan quotas and a tenant-scoped proxy to the Bolna voice API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)
# Configured lazily from the stored key on first provider-backed request
app.state.provider = BolnaClient()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed input is a 400 naming each offending field."""
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return JSONResponse(status_code=400, content={"message": "; ".join(problems) or "Invalid request"})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    message = "Internal server error" if settings.is_production else str(exc)
    return JSONResponse(status_code=500, content={"message": message})


app.include_router(health_router, tags=["Health"])
app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(super_admin_router, prefix="/api/super-admin", tags=["Super admin"])
app.include_router(tenant_router, prefix="/api/tenant", tags=["Tenant"])
app.include_router(agents_router, prefix="/api/bolna", tags=["Agents"])
app.include_router(calls_router, prefix="/api/bolna", tags=["Calls"])
app.include_router(resources_router, tags=["Resources"])
app.include_router(webhooks_router, prefix="/api/webhooks", tags=["Webhooks"])
app.include_router(keys_router, prefix="/api/keys", tags=["Keys"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"service": "VoiceDesk", "version": "0.1.0", "docs": "/docs"}
