"""
agenttrust Certified Object Verification

Lets any party confirm offline that a JSON object was certified by the
platform, against a key set that may hold several rotated keys.

Verification steps:
1. Extract the cert sub-object
2. Require key_id and signature
3. Resolve key_id in the key set
4. Decode the resolved public key
5. Enforce expires_at / parse issued_at
6. Canonicalize the object without its cert
7. Verify the Ed25519 signature
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from .canonicalization import canonicalize
from .cert import CERT_FIELD, signable_view
from .errors import (
    DecodingError,
    EncodingError,
    ExpiredCertError,
    MalformedCertError,
    MissingCertError,
    SignatureMismatchError,
    TrustError,
)
from .keyset import KeySet
from .signing import parse_public_key, verify
from .util import ensure_utc, parse_rfc3339


def verify_certified_object(
    obj: Mapping[str, Any],
    key_set: KeySet,
    now: Optional[datetime] = None
) -> None:
    """
    Verify a certified object. Returns None when valid, raises otherwise.

    Side-effect free; safe to call concurrently and repeatedly.

    Args:
        obj: Parsed JSON object with a `cert` field
        key_set: Live key set to resolve cert.key_id against
        now: Verification time (default: current UTC time)

    Raises:
        MissingCertError: cert absent or not an object
        MalformedCertError: empty key_id/signature or unparseable timestamps
        UnknownKeyError: key_id not in the key set
        KeyEncodingError / InvalidKeyError: resolved public key is malformed
        ExpiredCertError: expires_at is not strictly after now
        SignatureMismatchError: signature does not verify
    """
    if not isinstance(obj, Mapping):
        raise MissingCertError("certified object must be a JSON object")
    cert = obj.get(CERT_FIELD)
    if cert is None:
        raise MissingCertError("missing cert")
    if not isinstance(cert, Mapping):
        raise MissingCertError("invalid cert shape")

    def field(name: str) -> str:
        value = cert.get(name)
        return value.strip() if isinstance(value, str) else ""

    key_id = field("key_id")
    signature = field("signature")
    if not key_id or not signature:
        raise MalformedCertError("missing cert.key_id or cert.signature")

    entry = key_set.resolve(key_id)
    public_key = parse_public_key(entry.public_key)

    expires_at = field("expires_at")
    if expires_at:
        try:
            expiry = parse_rfc3339(expires_at)
        except DecodingError as e:
            raise MalformedCertError("invalid cert.expires_at") from e
        if ensure_utc(now) >= expiry:
            raise ExpiredCertError(f"cert expired at {expires_at}")

    issued_at = field("issued_at")
    if issued_at:
        try:
            parse_rfc3339(issued_at)
        except DecodingError as e:
            raise MalformedCertError("invalid cert.issued_at") from e

    payload = canonicalize(signable_view(obj))
    try:
        ok = verify(public_key, payload, signature)
    except DecodingError as e:
        raise MalformedCertError(f"invalid signature encoding: {e.message}") from e
    if not ok:
        raise SignatureMismatchError("signature verification failed")


class VerificationOutcome(str, Enum):
    VALID = "VALID"
    INVALID = "INVALID"


@dataclass
class VerificationResult:
    """Definite outcome of verifying a certified object."""
    outcome: VerificationOutcome
    code: Optional[str] = None
    reason: Optional[str] = None
    key_id: Optional[str] = None

    def is_valid(self) -> bool:
        return self.outcome is VerificationOutcome.VALID

    @classmethod
    def valid(cls, key_id: Optional[str] = None) -> 'VerificationResult':
        return cls(outcome=VerificationOutcome.VALID, key_id=key_id)

    @classmethod
    def invalid(cls, code: str, reason: str, key_id: Optional[str] = None) -> 'VerificationResult':
        return cls(outcome=VerificationOutcome.INVALID, code=code, reason=reason, key_id=key_id)


def check_certified_object(
    obj: Mapping[str, Any],
    key_set: KeySet,
    now: Optional[datetime] = None
) -> VerificationResult:
    """
    Verify and report a VALID/INVALID result instead of raising.

    Trust and encoding failures become INVALID with their error code.
    Anything else (e.g. a transport failure) still propagates.
    """
    key_id = None
    cert = obj.get(CERT_FIELD) if isinstance(obj, Mapping) else None
    if isinstance(cert, Mapping) and isinstance(cert.get("key_id"), str):
        key_id = cert["key_id"].strip() or None

    try:
        verify_certified_object(obj, key_set, now=now)
    except (TrustError, EncodingError) as e:
        return VerificationResult.invalid(e.code, e.message, key_id=key_id)
    return VerificationResult.valid(key_id=key_id)
