"""
Host-based Tenant Resolver

Maps (host, path, user) to a tenant id.

Allowlist format (env HOST_ALLOWLIST, JSON):
    [
        {"host": "admin.example.com", "prefixes": ["/admin"], "ownerId": "t1"},
        {"host": "app.example.com", "prefixes": ["/"]}
    ]

Rules:
- Host match is exact on the lower-cased host (port included).
- A prefix of "/" allows every path; otherwise the path must equal the
  prefix or continue it with a "/" segment boundary.
- Tenant precedence: authenticated user's claim > host ownerId >
  DEFAULT_TENANT_ID > "public" (only for permissive callers).

The resolver is built once at startup and stored on app.state; call
reload() to re-read configuration.
"""
import json
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from app.shared.core.config import settings
from app.shared.core.constants import PUBLIC_TENANT_ID
from app.shared.utils.exceptions import TenantConfigurationError, TenantResolutionError

logger = logging.getLogger("tenant_resolver")


# ============================================
# MODELS
# ============================================

class HostRule(BaseModel):
    """One allowlist entry."""
    host: str
    prefixes: List[str] = Field(default_factory=lambda: ["/"])
    owner_id: Optional[str] = Field(default=None, alias="ownerId")

    model_config = {"populate_by_name": True}

    @field_validator("host")
    @classmethod
    def normalize_host(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if not v:
            raise ValueError("host must not be empty")
        return v

    @field_validator("prefixes")
    @classmethod
    def normalize_prefixes(cls, v: List[str]) -> List[str]:
        cleaned = [normalize_path(p) for p in v if p and p.strip()]
        return cleaned or ["/"]

    @field_validator("owner_id")
    @classmethod
    def blank_owner_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class TenantResolution(BaseModel):
    """Result of a successful resolution."""
    tenant_id: str
    source: str  # "claim" | "host" | "default" | "public"
    host: str
    rule: HostRule


# ============================================
# PURE HELPERS
# ============================================

def normalize_path(path: str) -> str:
    """Ensure a leading slash and drop a trailing one ("/" stays "/")."""
    path = (path or "").strip() or "/"
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


def path_allowed(path: str, rule: HostRule) -> bool:
    """Segment-aware prefix match: "/admin" allows "/admin" and "/admin/x", not "/administrator"."""
    candidate = normalize_path(path)
    for prefix in rule.prefixes:
        if prefix == "/":
            return True
        if candidate == prefix or candidate.startswith(prefix + "/"):
            return True
    return False


def parse_allowlist(raw: Optional[str]) -> List[HostRule]:
    """
    Parse HOST_ALLOWLIST JSON.

    Raises:
        TenantConfigurationError: malformed JSON or wrong shape.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise TenantConfigurationError(f"HOST_ALLOWLIST is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise TenantConfigurationError("HOST_ALLOWLIST must be a JSON list of host rules")

    try:
        rules = [HostRule.model_validate(entry) for entry in data]
    except ValidationError as e:
        raise TenantConfigurationError(f"HOST_ALLOWLIST entry is invalid: {e}") from e

    return rules


# ============================================
# RESOLVER
# ============================================

class TenantResolver:
    """
    Process-scoped tenant resolver.

    Build with TenantResolver.from_settings() during application startup;
    construction fails fast on bad configuration.
    """

    def __init__(
        self,
        rules: List[HostRule],
        production: bool,
        default_tenant_id: Optional[str] = None,
        dev_host: str = "localhost:8000",
    ):
        self.production = production
        self.default_tenant_id = (default_tenant_id or "").strip() or None
        # No owner: the configured default applies with source="default"
        self.dev_rule = HostRule(host=dev_host, prefixes=["/"])
        self._rules: Dict[str, HostRule] = {}
        self._load(rules)

    @classmethod
    def from_settings(cls, config=None) -> "TenantResolver":
        """
        Build a resolver from Settings.

        Raises:
            TenantConfigurationError: allowlist missing in production or malformed anywhere.
        """
        config = config or settings
        rules = cls._rules_from_config(config)
        return cls(
            rules=rules,
            production=config.is_production,
            default_tenant_id=config.DEFAULT_TENANT_ID,
            dev_host=config.DEV_HOST,
        )

    @staticmethod
    def _rules_from_config(config) -> List[HostRule]:
        raw = (config.HOST_ALLOWLIST or "").strip()
        if raw:
            return parse_allowlist(raw)

        if config.is_production:
            raise TenantConfigurationError("HOST_ALLOWLIST is required in production")

        logger.warning(
            f"HOST_ALLOWLIST not set, using developer host only: host={config.DEV_HOST}"
        )
        return [HostRule(host=config.DEV_HOST, prefixes=["/"])]

    def _load(self, rules: List[HostRule]) -> None:
        loaded: Dict[str, HostRule] = {}
        for rule in rules:
            if rule.host in loaded:
                raise TenantConfigurationError(f"Host '{rule.host}' is mapped more than once")
            loaded[rule.host] = rule
        self._rules = loaded
        logger.info(f"Tenant allowlist loaded: hosts={sorted(loaded)} production={self.production}")

    def reload(self, config=None) -> None:
        """Re-read the allowlist from configuration, keeping the old one on failure."""
        config = config or settings
        rules = self._rules_from_config(config)
        self._load(rules)

    @property
    def rules(self) -> List[HostRule]:
        return list(self._rules.values())

    # ============================================
    # LOOKUPS
    # ============================================

    def find_rule(self, host: Optional[str]) -> Optional[HostRule]:
        """Exact, case-insensitive host lookup. Unmapped outside production falls back to the dev rule."""
        key = (host or "").strip().lower()
        rule = self._rules.get(key)
        if rule is not None:
            return rule
        if not self.production:
            return self.dev_rule
        return None

    def resolve(
        self,
        host: Optional[str],
        path: Optional[str] = None,
        claimed_tenant_id: Optional[str] = None,
        allow_public: bool = False,
    ) -> TenantResolution:
        """
        Resolve the tenant for a request.

        Args:
            host: Request host (X-Forwarded-Host or Host), port included
            path: Request path; None skips path authorization
            claimed_tenant_id: Tenant claim of the authenticated user, if any
            allow_public: Permit the "public" sentinel when nothing else matches

        Raises:
            TenantResolutionError: unmapped host (production), disallowed path,
                or no tenant source available.
        """
        normalized_host = (host or "").strip().lower()
        rule = self.find_rule(normalized_host)
        if rule is None:
            logger.warning(f"Tenant rejected: unmapped host={normalized_host!r} path={path}")
            raise TenantResolutionError("host is not allowlisted", host=normalized_host, path=path)

        if path is not None and not path_allowed(path, rule):
            logger.warning(f"Tenant rejected: path not allowed host={normalized_host} path={path}")
            raise TenantResolutionError("path is not allowed for this host", host=normalized_host, path=path)

        claimed = (claimed_tenant_id or "").strip()
        if claimed:
            return TenantResolution(tenant_id=claimed, source="claim", host=normalized_host, rule=rule)
        if rule.owner_id:
            return TenantResolution(tenant_id=rule.owner_id, source="host", host=normalized_host, rule=rule)
        if self.default_tenant_id:
            return TenantResolution(tenant_id=self.default_tenant_id, source="default", host=normalized_host, rule=rule)
        if allow_public:
            return TenantResolution(tenant_id=PUBLIC_TENANT_ID, source="public", host=normalized_host, rule=rule)

        logger.warning(f"Tenant rejected: no tenant source host={normalized_host} path={path}")
        raise TenantResolutionError("no tenant could be determined", host=normalized_host, path=path)
