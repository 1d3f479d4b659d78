"""
Custom Exceptions for the Inbox Application.

Every exception carries an HTTP status code and a stable machine-readable
code so the API layer can translate it without knowing the business logic.
"""
from typing import Optional


class AppError(Exception):
    """Base class for all handled application errors."""
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


# ============================================
# TENANCY
# ============================================

class TenantResolutionError(AppError):
    """
    Raised when a request cannot be bound to a tenant.

    Causes: unmapped host in production, path outside the host's allowed
    prefixes, or no tenant source available at all. Distinct from an
    authentication failure (401).
    """
    status_code = 403
    code = "TENANT_NOT_RESOLVED"

    def __init__(self, reason: str, host: Optional[str] = None, path: Optional[str] = None):
        self.reason = reason
        self.host = host
        self.path = path
        super().__init__(f"Tenant could not be resolved: {reason}")


class TenantConfigurationError(AppError):
    """
    Raised at startup when the host allowlist is malformed or missing in
    production. The process must not start serving in this state.
    """
    code = "TENANT_CONFIG_INVALID"


# ============================================
# PHONE NUMBERS
# ============================================

class InvalidPhoneError(AppError):
    """Phone number contains no digits."""
    status_code = 400
    code = "INVALID_PHONE"

    def __init__(self, raw: object = None):
        self.raw = raw
        super().__init__(f"Invalid phone number: {raw!r}")


class PhoneNotFoundError(AppError):
    """No phone number could be extracted from the webhook payload."""
    status_code = 400
    code = "PHONE_NOT_FOUND"


# ============================================
# WEBHOOK
# ============================================

class WebhookAuthenticationError(AppError):
    """Webhook signature missing or invalid."""
    status_code = 401
    code = "WEBHOOK_UNAUTHORIZED"


class WebhookConfigurationError(AppError):
    """Webhook secret is not configured on the server."""
    code = "WEBHOOK_SECRET_MISSING"


# ============================================
# AUTHENTICATION
# ============================================

class AuthenticationRequiredError(AppError):
    """Authentication required."""
    status_code = 401
    code = "UNAUTHENTICATED"


# ============================================
# EXTERNAL PROVIDERS
# ============================================

class ProviderError(AppError):
    """
    Raised when an external provider (Z-API, Google) returns a non-success
    response, malformed JSON, or fails after all retries.
    """
    status_code = 502
    code = "PROVIDER_ERROR"

    def __init__(self, message: str, provider_status: Optional[int] = None, detail: Optional[str] = None):
        self.provider_status = provider_status
        self.detail = detail
        super().__init__(message)


class ProviderNotConfiguredError(AppError):
    """Provider credentials are not configured."""
    status_code = 503
    code = "PROVIDER_NOT_CONFIGURED"


# ============================================
# PERSISTENCE & LOOKUPS
# ============================================

class PersistenceError(AppError):
    """
    Raised when a datastore write still fails after the bounded retry window.
    Webhook callers surface this as a 500 so the provider redelivers.
    """
    code = "PERSISTENCE_FAILED"

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Persistence failed during {operation}: {cause}")


class EntityNotFoundError(AppError):
    """
    Raised when a requested entity does not exist under the current tenant.
    """
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: object):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found.")


class InvalidAttachmentError(AppError):
    """Attachment payload could not be decoded."""
    status_code = 400
    code = "INVALID_ATTACHMENT"


class PlacesNotConfiguredError(AppError):
    """GOOGLE_MAPS_API_KEY is not configured."""
    code = "PLACES_NOT_CONFIGURED"
