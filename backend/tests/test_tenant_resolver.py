# backend/tests/test_tenant_resolver.py
import json
from types import SimpleNamespace

import pytest

from app.modules.tenancy.resolver import (
    HostRule,
    TenantResolver,
    normalize_path,
    parse_allowlist,
    path_allowed,
)
from app.shared.utils.exceptions import TenantConfigurationError, TenantResolutionError

ALLOWLIST = [
    {"host": "admin.x.com", "prefixes": ["/admin"], "ownerId": "t1"},
    {"host": "App.Example.com", "prefixes": ["/"]},
]


def make_config(allowlist=ALLOWLIST, env="production", default_tenant="", dev_host="localhost:8000"):
    """Settings stand-in with just the fields the resolver reads."""
    return SimpleNamespace(
        HOST_ALLOWLIST=json.dumps(allowlist) if isinstance(allowlist, list) else allowlist,
        APP_ENV=env,
        is_production=env == "production",
        DEFAULT_TENANT_ID=default_tenant,
        DEV_HOST=dev_host,
    )


# --- 1. PATH MATCHING ---

@pytest.mark.parametrize("raw, expected", [
    ("", "/"),
    ("/", "/"),
    ("admin", "/admin"),
    ("/admin/", "/admin"),
])
def test_normalize_path(raw, expected):
    assert normalize_path(raw) == expected


def test_path_allowed_is_segment_aware():
    rule = HostRule(host="admin.x.com", prefixes=["/admin/"])
    assert path_allowed("/admin", rule)
    assert path_allowed("/admin/users", rule)
    assert not path_allowed("/administrator", rule)
    assert not path_allowed("/public", rule)


def test_root_prefix_allows_everything():
    rule = HostRule(host="app.example.com")
    assert rule.prefixes == ["/"]
    assert path_allowed("/anything/at/all", rule)


# --- 2. ALLOWLIST PARSING ---

def test_parse_allowlist_normalizes_hosts():
    rules = parse_allowlist(json.dumps(ALLOWLIST))
    assert [r.host for r in rules] == ["admin.x.com", "app.example.com"]
    assert rules[0].owner_id == "t1"
    assert rules[1].owner_id is None


@pytest.mark.parametrize("raw", ["{not json", '{"host": "a.com"}', '[{"prefixes": ["/"]}]', '[{"host": ""}]'])
def test_parse_allowlist_rejects_malformed(raw):
    with pytest.raises(TenantConfigurationError):
        parse_allowlist(raw)


def test_duplicate_hosts_rejected():
    allowlist = [{"host": "a.com"}, {"host": "A.COM", "ownerId": "x"}]
    with pytest.raises(TenantConfigurationError):
        TenantResolver.from_settings(make_config(allowlist))


def test_missing_allowlist_fatal_in_production():
    with pytest.raises(TenantConfigurationError):
        TenantResolver.from_settings(make_config(allowlist="", env="production"))


def test_missing_allowlist_uses_dev_host_outside_production():
    resolver = TenantResolver.from_settings(make_config(allowlist="", env="development", default_tenant="dev-tenant"))
    resolution = resolver.resolve("localhost:8000", "/api/inbox/conversations")
    assert resolution.tenant_id == "dev-tenant"
    assert resolution.source == "default"


# --- 3. RESOLUTION ---

def test_admin_host_resolves_owner():
    resolver = TenantResolver.from_settings(make_config())
    resolution = resolver.resolve("admin.x.com", "/admin/users")
    assert resolution.tenant_id == "t1"
    assert resolution.source == "host"


def test_admin_host_rejects_path_outside_prefix():
    resolver = TenantResolver.from_settings(make_config())
    with pytest.raises(TenantResolutionError) as exc:
        resolver.resolve("admin.x.com", "/public")
    assert exc.value.status_code == 403


def test_host_lookup_is_case_insensitive():
    resolver = TenantResolver.from_settings(make_config())
    assert resolver.resolve("ADMIN.X.COM", "/admin").tenant_id == "t1"


def test_unmapped_host_rejected_in_production_even_with_default():
    resolver = TenantResolver.from_settings(make_config(default_tenant="fallback"))
    with pytest.raises(TenantResolutionError):
        resolver.resolve("evil.com", "/admin")


def test_unmapped_host_falls_back_outside_production():
    resolver = TenantResolver.from_settings(make_config(env="development", default_tenant="fallback"))
    resolution = resolver.resolve("evil.com", "/anything")
    assert resolution.tenant_id == "fallback"
    assert resolution.source == "default"


def test_precedence_claim_over_host():
    resolver = TenantResolver.from_settings(make_config())
    resolution = resolver.resolve("admin.x.com", "/admin", claimed_tenant_id="t9")
    assert resolution.tenant_id == "t9"
    assert resolution.source == "claim"


def test_precedence_default_then_public():
    with_default = TenantResolver.from_settings(make_config(default_tenant="d1"))
    assert with_default.resolve("app.example.com", "/").tenant_id == "d1"

    without_default = TenantResolver.from_settings(make_config())
    assert without_default.resolve("app.example.com", "/", allow_public=True).tenant_id == "public"
    with pytest.raises(TenantResolutionError):
        without_default.resolve("app.example.com", "/")


def test_path_none_skips_path_check():
    resolver = TenantResolver.from_settings(make_config())
    assert resolver.resolve("admin.x.com", None).tenant_id == "t1"


# --- 4. RELOAD ---

def test_reload_keeps_old_rules_on_failure():
    resolver = TenantResolver.from_settings(make_config())
    with pytest.raises(TenantConfigurationError):
        resolver.reload(make_config(allowlist="[broken"))
    assert resolver.resolve("admin.x.com", "/admin").tenant_id == "t1"


def test_reload_picks_up_new_hosts():
    resolver = TenantResolver.from_settings(make_config())
    resolver.reload(make_config(allowlist=[{"host": "new.com", "ownerId": "t2"}]))
    assert resolver.resolve("new.com", "/").tenant_id == "t2"
    with pytest.raises(TenantResolutionError):
        resolver.resolve("admin.x.com", "/admin")
