"""
Input validators — framework-agnostic, pure functions.

Used by the service layer so that the same rules hold whether a call comes
through a FastAPI route (which already validated the DTO) or directly.
"""

from __future__ import annotations

import re
from datetime import date

import validators as _validators

from errors import ValidationError

OTP_LENGTH = 6
_OTP_PATTERN = re.compile(r"[0-9]{6}", re.ASCII)

OTP_PURPOSES = ("signup", "reset")

_USERNAME_PATTERN = re.compile(r"[a-z0-9_]{3,20}", re.ASCII)

MAX_AGE_YEARS = 100


def normalize_identifier(identifier: str) -> str:
    """Trim and lowercase an email identifier, rejecting malformed input.

    Raises:
        ValidationError: when the value is not a valid email address.
    """
    value = (identifier or "").strip().lower()
    if not value or not _validators.email(value):
        raise ValidationError("Invalid email address", field="identifier")
    return value


def is_valid_otp_format(code: str) -> bool:
    """True only for exactly six ASCII digits."""
    return isinstance(code, str) and _OTP_PATTERN.fullmatch(code) is not None


def validate_otp_format(code: str) -> str:
    if not is_valid_otp_format(code):
        raise ValidationError(
            f"OTP must be exactly {OTP_LENGTH} digits", field="code"
        )
    return code


def validate_purpose(purpose: str) -> str:
    if purpose not in OTP_PURPOSES:
        raise ValidationError(
            "Invalid purpose",
            field="purpose",
            details={"allowed": list(OTP_PURPOSES)},
        )
    return purpose


def validate_date_of_birth(date_of_birth: date, today: date) -> date:
    """Birth date must not be in the future nor more than 100 years ago."""
    try:
        earliest = today.replace(year=today.year - MAX_AGE_YEARS)
    except ValueError:  # 29 February
        earliest = today.replace(year=today.year - MAX_AGE_YEARS, day=28)
    if date_of_birth > today or date_of_birth < earliest:
        raise ValidationError("Invalid birth date", field="dateOfBirth")
    return date_of_birth


def normalize_username(username: str) -> str:
    """Lowercase a username; 3-20 of ``a-z``, ``0-9`` and ``_``."""
    value = (username or "").strip().lower()
    if _USERNAME_PATTERN.fullmatch(value) is None:
        raise ValidationError(
            "Username can only contain lowercase letters, numbers, and underscores",
            field="username",
            hint="Use 3 to 20 characters",
        )
    return value
