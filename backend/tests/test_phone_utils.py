# backend/tests/test_phone_utils.py
import pytest

from app.shared.utils.exceptions import InvalidPhoneError
from app.shared.utils.phone_utils import (
    digits_only,
    normalize_phone,
    normalize_phone_or_none,
    normalize_phone_strict,
    format_phone_display,
)


# --- 1. CANONICAL NORMALIZATION ---

@pytest.mark.parametrize("raw, expected", [
    ("11987654321", "5511987654321"),
    ("+55 11 98765-4321", "5511987654321"),
    ("(11) 98765-4321", "5511987654321"),
    ("5511987654321", "5511987654321"),
    ("987654321", "55987654321"),  # length is not validated here
])
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_normalize_phone_is_idempotent():
    once = normalize_phone("+55 (21) 99876-5432")
    assert normalize_phone(once) == once


@pytest.mark.parametrize("raw", ["", "   ", "abc", "+-()", None])
def test_normalize_phone_without_digits_raises(raw):
    with pytest.raises(InvalidPhoneError):
        normalize_phone(raw)


def test_normalize_phone_or_none():
    assert normalize_phone_or_none("no digits") is None
    assert normalize_phone_or_none("21 99876 5432") == "5521998765432"


def test_normalize_phone_custom_country_code():
    assert normalize_phone("2025550123", country_code="1") == "12025550123"


def test_digits_only():
    assert digits_only("+55 (11) 9.8765-4321") == "5511987654321"
    assert digits_only(None) == ""


# --- 2. STRICT VARIANT (batch existence check) ---

@pytest.mark.parametrize("raw, expected", [
    ("(21) 99876-5432", "5521998765432"),      # 11-digit mobile
    ("(21) 3456-7890", "552134567890"),        # 10-digit landline
    ("+55 21 99876-5432", "5521998765432"),
    ("98765-4321", None),                      # missing area code
    ("0800 123 4567 89", None),                # too long
    ("", None),
    (None, None),
])
def test_normalize_phone_strict(raw, expected):
    assert normalize_phone_strict(raw) == expected


def test_strict_keeps_national_number_that_starts_with_55():
    # 55 is also a valid area code; 11 digits means no country code present
    assert normalize_phone_strict("55 99876-5432") == "5555998765432"


# --- 3. DISPLAY ---

def test_format_phone_display():
    assert format_phone_display("5511987654321") == "+55 11 98765-4321"
    assert format_phone_display("") == ""
