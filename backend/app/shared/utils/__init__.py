"""
Shared Utility Functions
"""
from app.shared.utils.exceptions import (
    AppError,
    TenantResolutionError,
    TenantConfigurationError,
    InvalidPhoneError,
    PhoneNotFoundError,
    WebhookAuthenticationError,
    WebhookConfigurationError,
    AuthenticationRequiredError,
    ProviderError,
    ProviderNotConfiguredError,
    PersistenceError,
    EntityNotFoundError,
    InvalidAttachmentError,
)
from app.shared.utils.phone_utils import (
    digits_only,
    normalize_phone,
    normalize_phone_or_none,
    normalize_phone_strict,
    format_phone_display,
)

__all__ = [
    # Exceptions
    "AppError",
    "TenantResolutionError",
    "TenantConfigurationError",
    "InvalidPhoneError",
    "PhoneNotFoundError",
    "WebhookAuthenticationError",
    "WebhookConfigurationError",
    "AuthenticationRequiredError",
    "ProviderError",
    "ProviderNotConfiguredError",
    "PersistenceError",
    "EntityNotFoundError",
    "InvalidAttachmentError",
    # Phone utilities
    "digits_only",
    "normalize_phone",
    "normalize_phone_or_none",
    "normalize_phone_strict",
    "format_phone_display",
]
