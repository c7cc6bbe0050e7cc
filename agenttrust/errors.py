"""
Error taxonomy for agenttrust.

Every failure raised by this package is an AgentTrustError carrying a
`kind` (the taxonomy bucket callers branch on) and a stable `code`
string. Callers should branch on the exception class or on `kind`/`code`,
never on the message text.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """
    Failure classes.

    CONFIGURATION: missing/invalid construction-time settings (fatal)
    ENCODING: malformed base64/JSON or unsupported values (caller defect)
    TRUST: unknown key, expired cert, signature mismatch (hard reject)
    CRYPTO_INTEGRITY: authentication tag failure (tampering, never retried)
    NOT_FOUND: missing object key
    PROVIDER: network/SDK failure (transient, caller may retry)
    IO: local filesystem failure
    """
    CONFIGURATION = "configuration"
    ENCODING = "encoding"
    TRUST = "trust"
    CRYPTO_INTEGRITY = "crypto_integrity"
    NOT_FOUND = "not_found"
    PROVIDER = "provider"
    IO = "io"


class AgentTrustError(Exception):
    """Base class for all agenttrust failures."""

    kind: ErrorKind = ErrorKind.ENCODING
    code: str = "error"

    def __init__(self, message: str = "", code: Optional[str] = None):
        self.message = message or self.code
        if code:
            self.code = code
        super().__init__(self.message)

    def to_dict(self):
        return {"kind": self.kind.value, "code": self.code, "message": self.message}


# ============================================================
# Configuration
# ============================================================

class ConfigurationError(AgentTrustError):
    kind = ErrorKind.CONFIGURATION
    code = "invalid_configuration"


class MissingBucketError(ConfigurationError):
    code = "missing_bucket"


class MissingKeyError(ConfigurationError):
    """Raised when envelope key material is empty or blank."""
    code = "missing_encryption_key"


# ============================================================
# Encoding
# ============================================================

class EncodingError(AgentTrustError):
    kind = ErrorKind.ENCODING
    code = "encoding_error"


class SerializationError(EncodingError):
    """Value is outside the JSON data model."""
    code = "unserializable_value"


class DecodingError(EncodingError):
    code = "decoding_error"


class KeyEncodingError(EncodingError):
    code = "invalid_key_encoding"


class InvalidKeyError(EncodingError):
    code = "invalid_key"


class TruncatedCiphertextError(EncodingError):
    code = "ciphertext_too_short"


class InvalidObjectKeyError(EncodingError):
    code = "invalid_object_key"


# ============================================================
# Trust
# ============================================================

class TrustError(AgentTrustError):
    """A certified object was rejected. Never downgrade to 'maybe valid'."""
    kind = ErrorKind.TRUST
    code = "untrusted"


class MissingCertError(TrustError):
    code = "missing_cert"


class MalformedCertError(TrustError):
    code = "malformed_cert"


class UnknownKeyError(TrustError):
    code = "unknown_key"


class ExpiredCertError(TrustError):
    code = "cert_expired"


class SignatureMismatchError(TrustError):
    code = "signature_mismatch"


# ============================================================
# Crypto integrity
# ============================================================

class CryptoIntegrityError(AgentTrustError):
    kind = ErrorKind.CRYPTO_INTEGRITY
    code = "integrity_failure"


class AuthenticationError(CryptoIntegrityError):
    """Authentication tag did not verify (tampered blob or wrong key)."""
    code = "authentication_failed"


# ============================================================
# Storage / provider
# ============================================================

class NotFoundError(AgentTrustError):
    kind = ErrorKind.NOT_FOUND
    code = "not_found"


class ProviderError(AgentTrustError):
    kind = ErrorKind.PROVIDER
    code = "provider_error"


class AssumeRoleError(ProviderError):
    code = "assume_role_failed"


class TransportError(ProviderError):
    code = "transport_error"


class StorageIOError(AgentTrustError):
    kind = ErrorKind.IO
    code = "io_error"
