"""UK phone number helpers for OTP sign-in.

All numbers are stored and sent to Supabase in E.164 form (``+44...``).
"""

import re

UK_COUNTRY_CODE = "+44"
UK_MOBILE_PREFIXES = ("7",)
UK_LANDLINE_PREFIXES = ("1", "2", "3", "4", "5", "6", "8", "9")

_NON_DIGITS = re.compile(r"\D")


def format_uk_phone_number(phone: str | None) -> str | None:
    """Convert raw user input (``07849 484659``, ``+44 7849...``) to E.164.

    Returns None when the national number is not 9-10 digits long.
    """
    if not phone:
        return None

    cleaned = _NON_DIGITS.sub("", phone)
    if cleaned.startswith("44"):
        cleaned = cleaned[2:]
    if cleaned.startswith("0"):
        cleaned = cleaned[1:]

    if not 9 <= len(cleaned) <= 10:
        return None

    return f"{UK_COUNTRY_CODE}{cleaned}"


def validate_uk_phone_number(phone: str | None) -> str | None:
    """Validate a UK phone number.

    Returns an error message, or None when the number is valid.
    """
    if not phone or not phone.strip():
        return "Phone number is required"

    formatted = format_uk_phone_number(phone)
    if not formatted:
        return "Please enter a valid UK phone number (e.g., 07849 484659)"

    if not (is_uk_mobile_number(formatted) or is_uk_landline_number(formatted)):
        return "Please enter a valid UK mobile or landline number"

    return None


def normalize_uk_phone_number(phone: str | None) -> str | None:
    """Normalised E.164 form used for storage, comparison and rate-limit keys."""
    formatted = format_uk_phone_number(phone)
    return formatted.replace(" ", "") if formatted else None


def format_uk_phone_for_display(phone: str) -> str:
    if not phone or not phone.startswith(UK_COUNTRY_CODE):
        return phone
    return f"{UK_COUNTRY_CODE} {phone[len(UK_COUNTRY_CODE):]}"


def get_uk_local_number(phone: str) -> str | None:
    if not phone or not phone.startswith(UK_COUNTRY_CODE):
        return None
    return phone[len(UK_COUNTRY_CODE):]


def is_uk_mobile_number(phone: str) -> bool:
    formatted = format_uk_phone_number(phone)
    if not formatted:
        return False
    return formatted[len(UK_COUNTRY_CODE):].startswith(UK_MOBILE_PREFIXES)


def is_uk_landline_number(phone: str) -> bool:
    formatted = format_uk_phone_number(phone)
    if not formatted:
        return False
    return formatted[len(UK_COUNTRY_CODE):].startswith(UK_LANDLINE_PREFIXES)
