"""
agenttrust Cryptographic Signing

Uses Ed25519 (RFC 8032) for detached signatures over canonical JSON.

Key formats:
- public key: 32 raw bytes
- private key: 64 raw bytes, the 32-byte seed followed by the public key

Both are exchanged as standard base64, optionally tagged "ed25519:".
"""

from typing import Tuple

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from .errors import DecodingError, InvalidKeyError, KeyEncodingError
from .util import b64d, b64e

ALG_ED25519 = "Ed25519"
PUBLIC_KEY_SIZE = 32
SEED_SIZE = 32
PRIVATE_KEY_SIZE = 64
SIGNATURE_SIZE = 64

_KEY_TAG = "ed25519:"


def generate_keypair() -> Tuple[bytes, bytes]:
    """
    Generate an Ed25519 key pair.

    Returns:
        Tuple of (public_key_bytes, private_key_bytes)
    """
    sk = SigningKey.generate()
    public = bytes(sk.verify_key)
    return public, bytes(sk) + public


def _signing_key(private_key: bytes) -> SigningKey:
    if not isinstance(private_key, (bytes, bytearray)) or len(private_key) != PRIVATE_KEY_SIZE:
        size = len(private_key) if isinstance(private_key, (bytes, bytearray)) else "n/a"
        raise InvalidKeyError(f"invalid ed25519 private key length: {size}")
    sk = SigningKey(bytes(private_key[:SEED_SIZE]))
    if bytes(sk.verify_key) != bytes(private_key[SEED_SIZE:]):
        raise InvalidKeyError("ed25519 private key does not match its embedded public key")
    return sk


def public_key_from_private(private_key: bytes) -> bytes:
    return bytes(_signing_key(private_key).verify_key)


def sign(private_key: bytes, message: bytes) -> bytes:
    """
    Sign a message with an Ed25519 private key.

    Raises:
        InvalidKeyError: If the private key is not a valid 64-byte key
    """
    return _signing_key(private_key).sign(message).signature


def sign_b64(private_key: bytes, message: bytes) -> str:
    """Sign a message and return the base64-encoded signature."""
    return b64e(sign(private_key, message))


def verify(public_key: bytes, message: bytes, signature_b64: str) -> bool:
    """
    Verify an Ed25519 signature.

    A signature that does not verify is a negative result, not an error.

    Args:
        public_key: 32-byte public key
        message: The signed bytes
        signature_b64: Base64-encoded signature

    Returns:
        True if the signature is valid, False otherwise

    Raises:
        InvalidKeyError: If the public key is malformed
        DecodingError: If the signature is not valid base64
    """
    if not isinstance(public_key, (bytes, bytearray)) or len(public_key) != PUBLIC_KEY_SIZE:
        size = len(public_key) if isinstance(public_key, (bytes, bytearray)) else "n/a"
        raise InvalidKeyError(f"invalid ed25519 public key length: {size}")
    if not isinstance(signature_b64, str):
        raise DecodingError("signature must be a base64 string")

    signature = b64d(signature_b64.strip())
    if len(signature) != SIGNATURE_SIZE:
        return False

    try:
        vk = VerifyKey(bytes(public_key))
        vk.verify(message, signature)
        return True
    except BadSignatureError:
        return False


def _decode_key(s: str, kind: str, size: int) -> bytes:
    if not isinstance(s, str):
        raise KeyEncodingError(f"{kind} key must be a string")
    s = s.strip()
    if s.lower().startswith(_KEY_TAG):
        s = s[len(_KEY_TAG):].strip()
    if not s:
        raise KeyEncodingError(f"empty {kind} key")
    try:
        raw = b64d(s)
    except DecodingError as e:
        raise KeyEncodingError(f"invalid {kind} key encoding: {e.message}") from e
    if len(raw) != size:
        raise InvalidKeyError(f"invalid ed25519 {kind} key length: {len(raw)}")
    return raw


def parse_public_key(s: str) -> bytes:
    """
    Parse a base64 Ed25519 public key, with or without the "ed25519:" tag.

    Raises:
        KeyEncodingError: If the key is empty or not valid base64
        InvalidKeyError: If the decoded key is not 32 bytes
    """
    return _decode_key(s, "public", PUBLIC_KEY_SIZE)


def parse_private_key(s: str) -> bytes:
    """
    Parse a base64 Ed25519 private key, with or without the "ed25519:" tag.

    Raises:
        KeyEncodingError: If the key is empty or not valid base64
        InvalidKeyError: If the decoded key is not 64 bytes
    """
    return _decode_key(s, "private", PRIVATE_KEY_SIZE)


def encode_public_key(public_key: bytes) -> str:
    return b64e(public_key)


def encode_private_key(private_key: bytes) -> str:
    return b64e(private_key)
