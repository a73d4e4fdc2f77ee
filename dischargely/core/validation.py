"""Input validation for OTP codes, referral ids and medical notes."""

import re
import uuid as uuid_pkg

from dischargely.config import USAGE_LIMITS

_OTP_PATTERN = re.compile(r"^\d{6}$")
_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def validate_otp(code: str | None) -> str | None:
    """Return an error message, or None for a valid 6-digit code."""
    if not code:
        return "Verification code is required"
    if not _OTP_PATTERN.match(code.strip()):
        return "Verification code must be 6 digits"
    return None


def validate_referral_uuid(value: str | None) -> bool:
    return bool(value) and bool(_UUID_PATTERN.match(value.strip()))


def parse_referral_uuid(value: str | None) -> uuid_pkg.UUID | None:
    """Parse a referral id in canonical 8-4-4-4-12 form, None if malformed."""
    if not validate_referral_uuid(value):
        return None
    return uuid_pkg.UUID(value.strip())


def validate_medical_notes(notes: str | None) -> str | None:
    """Return an error message, or None when the notes can be summarised."""
    if not notes or not notes.strip():
        return "Medical notes are required"
    if len(notes) > USAGE_LIMITS.max_medical_notes_chars:
        return (
            f"Medical notes must be at most "
            f"{USAGE_LIMITS.max_medical_notes_chars} characters"
        )
    return None
