"""
agenttrust: trust and scoped access issuance for a multi-tenant agent platform.

- Canonical JSON (RFC 8785) signing and offline verification of certified
  objects against a rotatable Ed25519 key set
- Envelope encryption of the platform's own private signing material
- Object storage (S3-compatible or local) and least-privilege, prefix-scoped,
  time-limited storage credentials

Usage:
    from agenttrust import (
        KeySet,
        certify_object,
        generate_keypair,
        verify_certified_object,
    )

    public, private = generate_keypair()
    signed = certify_object({"task_id": "t1"}, private, "k1", "agenttrust", 3600)

    key_set = KeySet.from_dict({"keys": [
        {"key_id": "k1", "alg": "Ed25519", "public_key": encode_public_key(public)}
    ]})
    verify_certified_object(signed, key_set)  # raises TrustError subclasses on reject
"""

__version__ = "1.0.0"

from .canonicalization import canonicalize, canonicalize_json, canonicalize_str
from .cert import Cert, certify_object, new_cert, sign_object, signable_view
from .config import StorageConfig, TrustConfig
from .envelope import SecretCipher, decrypt, encrypt
from .errors import (
    AgentTrustError,
    AssumeRoleError,
    AuthenticationError,
    ConfigurationError,
    CryptoIntegrityError,
    DecodingError,
    EncodingError,
    ErrorKind,
    ExpiredCertError,
    InvalidKeyError,
    InvalidObjectKeyError,
    KeyEncodingError,
    MalformedCertError,
    MissingBucketError,
    MissingCertError,
    MissingKeyError,
    NotFoundError,
    ProviderError,
    SerializationError,
    SignatureMismatchError,
    StorageIOError,
    TransportError,
    TruncatedCiphertextError,
    TrustError,
    UnknownKeyError,
)
from .keyring import PlatformKeyring
from .keyset import KeySet, fetch_key_set, load_key_set_file
from .models import KeySetDocument, PublicKeyEntry, STSCredentials
from .policy import build_policy, build_policy_dict
from .signing import (
    ALG_ED25519,
    encode_private_key,
    encode_public_key,
    generate_keypair,
    parse_private_key,
    parse_public_key,
    sign,
    sign_b64,
    verify,
)
from .storage import (
    LocalObjectStore,
    ObjectStore,
    S3ObjectStore,
    get_object_store,
    join_key,
    list_prefix,
)
from .sts import (
    CloudCredentialIssuer,
    CredentialIssuer,
    LocalCredentialIssuer,
    get_credential_issuer,
    issue_scoped_credentials,
)
from .verifier import (
    VerificationOutcome,
    VerificationResult,
    check_certified_object,
    verify_certified_object,
)

__all__ = [
    "__version__",

    # Canonicalization
    "canonicalize",
    "canonicalize_json",
    "canonicalize_str",

    # Signing
    "ALG_ED25519",
    "generate_keypair",
    "sign",
    "sign_b64",
    "verify",
    "parse_public_key",
    "parse_private_key",
    "encode_public_key",
    "encode_private_key",

    # Certification
    "Cert",
    "new_cert",
    "signable_view",
    "sign_object",
    "certify_object",
    "KeySet",
    "KeySetDocument",
    "PublicKeyEntry",
    "load_key_set_file",
    "fetch_key_set",
    "verify_certified_object",
    "check_certified_object",
    "VerificationResult",
    "VerificationOutcome",
    "PlatformKeyring",

    # Envelope encryption
    "SecretCipher",
    "encrypt",
    "decrypt",

    # Storage and credentials
    "StorageConfig",
    "TrustConfig",
    "ObjectStore",
    "LocalObjectStore",
    "S3ObjectStore",
    "get_object_store",
    "join_key",
    "list_prefix",
    "build_policy",
    "build_policy_dict",
    "STSCredentials",
    "CredentialIssuer",
    "LocalCredentialIssuer",
    "CloudCredentialIssuer",
    "get_credential_issuer",
    "issue_scoped_credentials",

    # Errors
    "ErrorKind",
    "AgentTrustError",
    "ConfigurationError",
    "MissingBucketError",
    "MissingKeyError",
    "EncodingError",
    "SerializationError",
    "DecodingError",
    "KeyEncodingError",
    "InvalidKeyError",
    "TruncatedCiphertextError",
    "InvalidObjectKeyError",
    "TrustError",
    "MissingCertError",
    "MalformedCertError",
    "UnknownKeyError",
    "ExpiredCertError",
    "SignatureMismatchError",
    "CryptoIntegrityError",
    "AuthenticationError",
    "NotFoundError",
    "ProviderError",
    "AssumeRoleError",
    "TransportError",
    "StorageIOError",
]
