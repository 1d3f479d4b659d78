"""
Webhook Authenticity Verification

Security layers:
1. IP whitelist (if WEBHOOK_ALLOWED_IPS is configured)
2. Shared-secret token (ZAPI_WEBHOOK_TOKEN, mandatory)

The provider is inconsistent about which header carries the token, so
several are checked, each with a constant-time comparison.

Modes:
- strict (default): a missing or wrong token is rejected with 401
- permissive: explicit opt-in; unverified deliveries are processed but
  every one of them is logged as a warning
"""
import logging
import re
import secrets
from typing import Mapping, Optional, List

from fastapi import Request

from app.shared.core.config import settings
from app.shared.utils.exceptions import WebhookAuthenticationError, WebhookConfigurationError

logger = logging.getLogger("webhook_auth")

TOKEN_HEADERS = (
    "X-Zapi-Signature",
    "X-Zapi-Token",
    "X-Webhook-Token",
    "Client-Token",
    "Authorization",
)

# Scheme names are case-insensitive (RFC 7235)
BEARER_PREFIX = re.compile(r"^bearer\s+", re.IGNORECASE)

MODE_STRICT = "strict"
MODE_PERMISSIVE = "permissive"


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs; first is the client
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else ""


def _parse_ip_list(raw: str) -> List[str]:
    return [ip.strip() for ip in (raw or "").split(",") if ip.strip()]


class WebhookVerifier:
    """Checks one delivery's origin and token."""

    def __init__(self, secret: Optional[str], mode: str = MODE_STRICT, allowed_ips: str = ""):
        self.secret = secret or ""
        self.mode = (mode or MODE_STRICT).strip().lower()
        if self.mode not in (MODE_STRICT, MODE_PERMISSIVE):
            logger.error(f"Unknown WEBHOOK_AUTH_MODE={mode!r}, falling back to strict")
            self.mode = MODE_STRICT
        self.allowed_ips = _parse_ip_list(allowed_ips)

    @classmethod
    def from_settings(cls, config=None) -> "WebhookVerifier":
        config = config or settings
        return cls(
            secret=config.ZAPI_WEBHOOK_TOKEN,
            mode=config.WEBHOOK_AUTH_MODE,
            allowed_ips=config.WEBHOOK_ALLOWED_IPS,
        )

    @property
    def permissive(self) -> bool:
        return self.mode == MODE_PERMISSIVE

    def _token_matches(self, headers: Mapping[str, str]) -> bool:
        expected = self.secret.encode()
        for header in TOKEN_HEADERS:
            provided = headers.get(header)
            if not provided:
                continue
            provided = BEARER_PREFIX.sub("", provided.strip())
            if secrets.compare_digest(provided.strip().encode(), expected):
                return True
        return False

    def verify(self, headers: Mapping[str, str], client_ip: str = "") -> bool:
        """
        Verify a delivery.

        Returns:
            True when the token matched; False when it did not but
            permissive mode let the delivery through.

        Raises:
            WebhookConfigurationError: no secret configured (fails closed).
            WebhookAuthenticationError: IP not whitelisted, or token
                missing/wrong in strict mode.
        """
        if not self.secret:
            logger.error("ZAPI_WEBHOOK_TOKEN not configured - refusing webhook delivery")
            raise WebhookConfigurationError("Webhook secret is not configured")

        # Layer 1: IP Whitelist Check
        if self.allowed_ips and client_ip not in self.allowed_ips:
            logger.warning(f"Webhook rejected: IP {client_ip} not in whitelist")
            raise WebhookAuthenticationError("Webhook source not allowed")

        # Layer 2: Secret Token Validation
        if self._token_matches(headers):
            logger.debug(f"Webhook verified successfully from {client_ip}")
            return True

        if self.permissive:
            logger.warning(
                f"UNVERIFIED webhook accepted (WEBHOOK_AUTH_MODE=permissive): ip={client_ip}"
            )
            return False

        logger.warning(f"Webhook rejected: missing or invalid token from {client_ip}")
        raise WebhookAuthenticationError("Unauthorized webhook request")
