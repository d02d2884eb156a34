import re
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as naive UTC, the form drop windows are stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def is_valid_email(email: Optional[str]) -> bool:
    if not email:
        return False
    return re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", email.strip()) is not None


# bcrypt only looks at the first 72 bytes of a secret
BCRYPT_MAX_BYTES = 72


def fits_bcrypt(secret: Optional[str]) -> bool:
    return len((secret or "").encode("utf-8")) <= BCRYPT_MAX_BYTES
