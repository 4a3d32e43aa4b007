from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timezone

import phonenumbers

from config import DEFAULT_PHONE_REGION


def utcnow() -> datetime:
    """UTC-aware 'now' to keep comparisons consistent with timestamptz columns."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything we store is UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_phone(phone: str, default_region: str = DEFAULT_PHONE_REGION) -> str:
    """
    Parse and validate a phone number, return E.164 digits without the leading '+'.
    Raises ValueError for anything that is not a valid number.
    """
    raw = (phone or "").strip()
    if not raw:
        raise ValueError("Phone number is required")

    candidates = [raw]
    # already-normalized input (international digits, no '+') must map to itself
    if raw.isdigit() and not raw.startswith("0") and len(raw) >= 11:
        candidates.insert(0, f"+{raw}")

    for candidate in candidates:
        try:
            parsed = phonenumbers.parse(candidate, default_region)
        except phonenumbers.NumberParseException:
            continue
        if phonenumbers.is_valid_number(parsed):
            return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164).removeprefix('+')

    raise ValueError(f"Invalid phone number: {phone}")


def to_e164(phone: str, default_region: str = DEFAULT_PHONE_REGION) -> str:
    """
    '+'-prefixed E.164 form for request models. Unlike the bare digits it parses
    back to the same number whatever its length, so services can normalize again.
    """
    return f"+{normalize_phone(phone, default_region)}"


def mask_phone(phone: str | None) -> str:
    """27821234567 -> 278***4567, for log lines and user-facing messages."""
    if not phone:
        return ""
    if len(phone) <= 4:
        return phone
    return f"{phone[:3]}***{phone[-4:]}"


def gen_otp_code(digits: int = 6) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(digits))


def gen_redemption_reference() -> str:
    # RDM-XXXXXXXX
    return f"RDM-{uuid.uuid4().hex[:8].upper()}"
