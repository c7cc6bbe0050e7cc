"""
Utility functions for agenttrust.

Provides base64 encoding, RFC3339 time handling and random tokens.
"""

import base64
import binascii
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from .errors import DecodingError

_RFC3339_RE = re.compile(
    r'^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$'
)


def b64e(b: bytes) -> str:
    """Base64 encode bytes to string."""
    return base64.b64encode(b).decode('ascii')


def b64d(s: Union[str, bytes]) -> bytes:
    """
    Strict standard base64 decode.

    Raises:
        DecodingError: If the input is not valid padded base64
    """
    if isinstance(s, str):
        try:
            s = s.encode('ascii')
        except UnicodeEncodeError as e:
            raise DecodingError("base64 input contains non-ASCII characters") from e
    try:
        return base64.b64decode(s, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodingError(f"invalid base64: {e}") from e


def b64url_encode(b: bytes) -> str:
    """URL-safe base64 encode bytes to string (no padding)."""
    return base64.urlsafe_b64encode(b).rstrip(b'=').decode('ascii')


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_rfc3339(dt: datetime) -> str:
    """Format a datetime as RFC3339 UTC with second precision. Naive values are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def parse_rfc3339(s: str) -> datetime:
    """
    Parse an RFC3339 timestamp into an aware datetime.

    Accepts fractional seconds and numeric offsets.

    Raises:
        DecodingError: If the string is not a valid RFC3339 timestamp
    """
    if not isinstance(s, str):
        raise DecodingError("timestamp must be a string")
    m = _RFC3339_RE.match(s.strip())
    if not m:
        raise DecodingError(f"invalid RFC3339 timestamp: {s!r}")

    year, month, day, hour, minute, second = (int(g) for g in m.groups()[:6])
    frac, offset = m.group(7), m.group(8)
    micro = int((frac[1:] + "000000")[:6]) if frac else 0

    if offset in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = 1 if offset[0] == "+" else -1
        hours, minutes = int(offset[1:3]), int(offset[4:6])
        if hours > 23 or minutes > 59:
            raise DecodingError(f"invalid RFC3339 offset: {s!r}")
        tz = timezone(sign * timedelta(hours=hours, minutes=minutes))

    try:
        return datetime(year, month, day, hour, minute, second, micro, tzinfo=tz)
    except ValueError as e:
        raise DecodingError(f"invalid RFC3339 timestamp: {s!r}") from e


def ensure_utc(dt: Optional[datetime]) -> datetime:
    if dt is None:
        return utc_now()
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def generate_token(length: int = 32) -> str:
    """Generate a cryptographically secure random URL-safe token."""
    return b64url_encode(secrets.token_bytes(length))

