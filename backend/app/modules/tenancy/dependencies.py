"""
FastAPI dependencies that bind a request to a tenant.

Resolution runs as a dependency so it always completes (or short-circuits
with 403) before any handler body touches the datastore.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request

from app.modules.tenancy.resolver import TenantResolver
from app.shared.auth.identity import CurrentUser, get_current_user, require_user
from app.shared.core.config import settings
from app.shared.core.logging import set_tenant_id

logger = logging.getLogger("tenancy")


@dataclass
class TenantContext:
    tenant_id: str
    source: str
    host: str
    user: Optional[CurrentUser] = None


def get_tenant_resolver(request: Request) -> TenantResolver:
    """The resolver built during application startup."""
    return request.app.state.tenant_resolver


def request_host(request: Request) -> str:
    """X-Forwarded-Host (first hop) when behind a proxy, else Host."""
    forwarded = request.headers.get("X-Forwarded-Host")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("Host", "")


def _resolve(
    request: Request,
    resolver: TenantResolver,
    user: Optional[CurrentUser],
    allow_public: bool,
) -> TenantContext:
    resolution = resolver.resolve(
        host=request_host(request),
        path=request.url.path,
        claimed_tenant_id=user.tenant_claim if user else None,
        allow_public=allow_public,
    )
    set_tenant_id(resolution.tenant_id)
    logger.debug(f"Tenant resolved: tenant={resolution.tenant_id} source={resolution.source} host={resolution.host}")
    return TenantContext(
        tenant_id=resolution.tenant_id,
        source=resolution.source,
        host=resolution.host,
        user=user,
    )


async def get_tenant_context(
    request: Request,
    user: CurrentUser = Depends(require_user),
    resolver: TenantResolver = Depends(get_tenant_resolver),
) -> TenantContext:
    """Authenticated tenant-scoped endpoints (401 before 403)."""
    return _resolve(request, resolver, user, allow_public=False)


async def get_optional_user_tenant_context(
    request: Request,
    user: Optional[CurrentUser] = Depends(get_current_user),
    resolver: TenantResolver = Depends(get_tenant_resolver),
) -> TenantContext:
    """Host-gated endpoints that do not touch tenant data; may fall back to "public"."""
    return _resolve(request, resolver, user, allow_public=True)


async def get_webhook_tenant_context(
    request: Request,
    resolver: TenantResolver = Depends(get_tenant_resolver),
) -> TenantContext:
    """Provider callbacks carry no user; the host mapping decides the tenant."""
    permissive = settings.WEBHOOK_AUTH_MODE.strip().lower() == "permissive"
    return _resolve(request, resolver, None, allow_public=permissive)
