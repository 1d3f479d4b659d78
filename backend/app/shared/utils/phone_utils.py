"""
Phone Number Normalization Utilities

Every phone number stored or sent to the provider goes through
normalize_phone() so the same person always maps to the same
(tenant, phone) contact row, however the number was typed.

Canonical form: digits only, prefixed with the country code (default "55").

Uses Google's libphonenumber (via phonenumbers package) only for
human-friendly display formatting.
"""
import re
import logging
from typing import Optional

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat

from app.shared.core.config import settings
from app.shared.utils.exceptions import InvalidPhoneError

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")

# National numbers (area code + subscriber) are 10 or 11 digits in Brazil
NATIONAL_NUMBER_LENGTHS = (10, 11)


def digits_only(raw: object) -> str:
    """Strip everything that is not a digit. None becomes an empty string."""
    if raw is None:
        return ""
    return _NON_DIGITS.sub("", str(raw))


def _country_code(country_code: Optional[str]) -> str:
    return country_code or settings.DEFAULT_COUNTRY_CODE or "55"


def normalize_phone(raw: object, country_code: Optional[str] = None) -> str:
    """
    Normalize a phone number to canonical digits.

    Rules:
        - strip all non-digit characters
        - empty result raises InvalidPhoneError
        - already starts with the country code: returned as-is
        - otherwise the country code is prepended

    Examples:
        >>> normalize_phone("11987654321")
        "5511987654321"
        >>> normalize_phone("+55 11 98765-4321")
        "5511987654321"
        >>> normalize_phone("5511987654321")
        "5511987654321"

    Pure and idempotent: normalize_phone(normalize_phone(p)) == normalize_phone(p).
    """
    digits = digits_only(raw)
    if not digits:
        raise InvalidPhoneError(raw)

    cc = _country_code(country_code)
    if digits.startswith(cc):
        return digits
    return cc + digits


def normalize_phone_or_none(raw: object, country_code: Optional[str] = None) -> Optional[str]:
    """Same as normalize_phone() but returns None instead of raising."""
    try:
        return normalize_phone(raw, country_code)
    except InvalidPhoneError:
        return None


def normalize_phone_strict(raw: object, country_code: Optional[str] = None) -> Optional[str]:
    """
    Stricter normalization used before the batch WhatsApp-existence check.

    After removing a leading country code the national number must have
    10 or 11 digits; anything else returns None so it is never sent to
    the provider.
    """
    digits = digits_only(raw)
    if not digits:
        return None

    cc = _country_code(country_code)
    national = digits
    if digits.startswith(cc) and len(digits) - len(cc) in NATIONAL_NUMBER_LENGTHS:
        national = digits[len(cc):]

    if len(national) not in NATIONAL_NUMBER_LENGTHS:
        return None
    return cc + national


def format_phone_display(phone: str) -> str:
    """
    Format a canonical number for display ("+55 11 98765-4321").
    Falls back to "+<digits>" when libphonenumber cannot parse it.
    """
    digits = digits_only(phone)
    if not digits:
        return ""
    try:
        parsed = phonenumbers.parse(f"+{digits}", None)
    except NumberParseException:
        return f"+{digits}"
    return phonenumbers.format_number(parsed, PhoneNumberFormat.INTERNATIONAL)
