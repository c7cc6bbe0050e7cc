"""
Certification envelope for agenttrust.

A certified object is any JSON object carrying a `cert` sibling field.
The signature inside `cert` covers the canonical form of the object with
`cert` removed, so the certification metadata never signs itself.
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional

from .canonicalization import canonicalize
from .errors import DecodingError, MalformedCertError
from .signing import ALG_ED25519, sign_b64
from .util import b64d, ensure_utc, format_rfc3339, parse_rfc3339

CERT_FIELD = "cert"


@dataclass(frozen=True)
class Cert:
    issuer: str
    key_id: str
    issued_at: str
    expires_at: str
    alg: str
    signature: str

    def validate_basic(self) -> None:
        """
        Structural check only: required fields present, signature is base64,
        timestamps parse. Does not check the signature or expiry.

        Raises:
            MalformedCertError: On the first structural defect found
        """
        for name in ("issuer", "key_id", "alg", "issued_at", "expires_at", "signature"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise MalformedCertError(f"missing {name}")
        try:
            b64d(self.signature.strip())
        except DecodingError as e:
            raise MalformedCertError(f"invalid signature encoding: {e.message}") from e
        for name in ("issued_at", "expires_at"):
            try:
                parse_rfc3339(getattr(self, name))
            except DecodingError as e:
                raise MalformedCertError(f"invalid {name}") from e

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Cert":
        """Build a Cert from a mapping; absent or non-string fields become empty."""
        def field(name: str) -> str:
            value = data.get(name)
            return value if isinstance(value, str) else ""

        return cls(
            issuer=field("issuer"),
            key_id=field("key_id"),
            issued_at=field("issued_at"),
            expires_at=field("expires_at"),
            alg=field("alg"),
            signature=field("signature"),
        )


def new_cert(
    issuer: str,
    key_id: str,
    alg: str,
    issued_at: datetime,
    expires_at: datetime,
    signature: str
) -> Cert:
    """Construct a Cert, normalizing timestamps to UTC RFC3339."""
    return Cert(
        issuer=issuer,
        key_id=key_id,
        issued_at=format_rfc3339(issued_at),
        expires_at=format_rfc3339(expires_at),
        alg=alg,
        signature=signature,
    )


def signable_view(obj: Mapping[str, Any]) -> Dict[str, Any]:
    """Shallow copy of obj with the cert field removed."""
    body = dict(obj)
    body.pop(CERT_FIELD, None)
    return body


def sign_object(
    obj: Mapping[str, Any],
    private_key: bytes,
    key_id: str,
    issuer: str,
    ttl_seconds: int,
    alg: str = ALG_ED25519,
    now: Optional[datetime] = None
) -> Cert:
    """
    Sign the business payload of obj and return its Cert.

    Any existing cert on obj is ignored.
    """
    payload = canonicalize(signable_view(obj))
    signature = sign_b64(private_key, payload)
    issued_at = ensure_utc(now)
    expires_at = issued_at + timedelta(seconds=ttl_seconds)
    return new_cert(issuer, key_id, alg, issued_at, expires_at, signature)


def certify_object(
    obj: Mapping[str, Any],
    private_key: bytes,
    key_id: str,
    issuer: str,
    ttl_seconds: int,
    alg: str = ALG_ED25519,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Return a new dict holding obj's payload plus a fresh cert."""
    cert = sign_object(obj, private_key, key_id, issuer, ttl_seconds, alg=alg, now=now)
    certified = signable_view(obj)
    certified[CERT_FIELD] = cert.to_dict()
    return certified
