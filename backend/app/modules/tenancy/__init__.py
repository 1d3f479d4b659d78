"""
Tenancy Module

Binds every request to exactly one tenant before any data access:
- Host allowlist parsed once at startup (HOST_ALLOWLIST)
- Path-prefix authorization per host
- Tenant precedence: user claim > host mapping > default > "public"
"""

from .resolver import HostRule, TenantResolution, TenantResolver

__all__ = [
    "HostRule",
    "TenantResolution",
    "TenantResolver",
]
