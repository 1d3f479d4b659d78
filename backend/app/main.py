from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.shared.core.config import settings
from app.shared.core.logging import setup_logging, get_correlation_id
from app.shared.middleware.correlation import CorrelationIdMiddleware
from app.shared.utils.exceptions import AppError
from app.shared.utils.http_client import shutdown_http_client
from app.modules.tenancy.resolver import TenantResolver
from app.modules.whatsapp_inbox.api import webhook_endpoints, inbox_endpoints
from app.modules.places.api import places_endpoints

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # A malformed allowlist (or none in production) aborts startup here
    app.state.tenant_resolver = TenantResolver.from_settings()
    logger.info(
        f"Startup complete: env={settings.APP_ENV} "
        f"host_rules={len(app.state.tenant_resolver.rules)}"
    )
    yield
    await shutdown_http_client()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Correlation id on every request / log line
app.add_middleware(CorrelationIdMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{exc.code}: {exc.message} path={request.url.path} host={request.headers.get('host')}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
        headers={"X-Request-ID": get_correlation_id() or ""},
    )


# Z-API webhooks
app.include_router(webhook_endpoints.router, prefix="/api/webhooks", tags=["Webhooks"])

# Inbox: conversations, messages, outbound sends
app.include_router(inbox_endpoints.router, prefix="/api/inbox", tags=["WhatsApp Inbox"])

# Google Places lookup
app.include_router(places_endpoints.router, prefix="/api/places", tags=["Places"])


@app.get("/health")
def health():
    return {"status": "healthy", "service": settings.PROJECT_NAME}
