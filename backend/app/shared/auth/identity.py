"""
Identity Provider (Supabase Auth)

Resolves the current user from an access token by calling
GET {SUPABASE_URL}/auth/v1/user. The tenant claim is read from the
server-controlled app_metadata (owner_id / tenant_id), never from
user-editable metadata.

Token sources, in order:
1. Authorization: Bearer <token>
2. sb-access-token cookie
"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Depends, Request

from app.shared.core.config import settings
from app.shared.core.constants import TIMEOUT_IDENTITY_API
from app.shared.utils.exceptions import AuthenticationRequiredError, ProviderError
from app.shared.utils.http_client import http_client_manager

logger = logging.getLogger("identity")

ACCESS_TOKEN_COOKIE = "sb-access-token"


@dataclass
class CurrentUser:
    id: str
    email: Optional[str] = None
    tenant_claim: Optional[str] = None
    role: Optional[str] = None


class IdentityProvider:
    """Thin client over the Supabase Auth user endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.SUPABASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.SUPABASE_ANON_KEY
        self._http_client = http_client

    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def _client(self) -> httpx.AsyncClient:
        return self._http_client or http_client_manager.get_client()

    async def get_current_user(self, access_token: Optional[str]) -> Optional[CurrentUser]:
        """
        Look up the user owning an access token.

        Returns None for a missing, expired or rejected token.
        Raises ProviderError when the identity service itself fails.
        """
        if not access_token:
            return None
        if not self.is_configured():
            logger.warning("SUPABASE_URL / SUPABASE_ANON_KEY not configured - treating request as anonymous")
            return None

        try:
            response = await self._client().get(
                f"{self.base_url}/auth/v1/user",
                headers={
                    "apikey": self.api_key,
                    "Authorization": f"Bearer {access_token}",
                },
                timeout=TIMEOUT_IDENTITY_API,
            )
        except httpx.HTTPError as e:
            logger.error(f"Identity lookup failed: {e}")
            raise ProviderError("Identity provider unavailable") from e

        if response.status_code in (401, 403):
            return None
        if response.status_code != 200:
            logger.error(f"Identity lookup error: status={response.status_code} body={response.text[:200]}")
            raise ProviderError("Identity provider error", provider_status=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError("Identity provider returned malformed JSON") from e

        user_id = data.get("id")
        if not user_id:
            return None

        app_metadata = data.get("app_metadata") or {}
        tenant_claim = app_metadata.get("owner_id") or app_metadata.get("tenant_id")
        return CurrentUser(
            id=str(user_id),
            email=data.get("email"),
            tenant_claim=str(tenant_claim) if tenant_claim else None,
            role=app_metadata.get("role") or data.get("role"),
        )


identity_provider = IdentityProvider()


# ============================================
# FastAPI DEPENDENCIES
# ============================================

def extract_access_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(ACCESS_TOKEN_COOKIE) or None


def get_identity_provider() -> IdentityProvider:
    return identity_provider


async def get_current_user(
    request: Request,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Optional[CurrentUser]:
    """Optional user: None when the request is anonymous."""
    return await provider.get_current_user(extract_access_token(request))


async def require_user(
    user: Optional[CurrentUser] = Depends(get_current_user),
) -> CurrentUser:
    """Mandatory user: 401 when the request is anonymous."""
    if user is None:
        raise AuthenticationRequiredError("Authentication required")
    return user
