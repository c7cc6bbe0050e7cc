"""
Secret envelope encryption for agenttrust.

Protects the platform's own secrets at rest (e.g. private signing keys).

Blob format version 1:
    nonce (24 bytes) || ciphertext + Poly1305 tag (16 bytes)

Cipher: XSalsa20-Poly1305 (NaCl secretbox). The symmetric key is the
SHA-256 digest of the operator-supplied key material. This is a fast hash,
not a password hash: the key material is an operator-held secret, not an
end-user password.
"""

import hashlib
from typing import Union

import nacl.utils
from nacl.exceptions import CryptoError
from nacl.secret import SecretBox

from .errors import AuthenticationError, MissingKeyError, TruncatedCiphertextError

BLOB_FORMAT_VERSION = 1
NONCE_SIZE = SecretBox.NONCE_SIZE
TAG_SIZE = SecretBox.MACBYTES


def derive_key(key_material: Union[str, bytes]) -> bytes:
    """
    Derive the fixed-size symmetric key from operator key material.

    Raises:
        MissingKeyError: If the key material is empty or blank
    """
    if isinstance(key_material, str):
        key_material = key_material.strip().encode("utf-8")
    elif isinstance(key_material, (bytes, bytearray)):
        key_material = bytes(key_material).strip()
    else:
        raise MissingKeyError("key material must be str or bytes")
    if not key_material:
        raise MissingKeyError("missing encryption key")
    return hashlib.sha256(key_material).digest()


class SecretCipher:
    """Envelope cipher bound to one derived key."""

    def __init__(self, key_material: Union[str, bytes]):
        self._box = SecretBox(derive_key(key_material))

    def encrypt(self, plaintext: bytes) -> bytes:
        # A fresh random nonce on every call; nonces are never caller-supplied.
        nonce = nacl.utils.random(NONCE_SIZE)
        return bytes(self._box.encrypt(bytes(plaintext), nonce))

    def decrypt(self, blob: bytes) -> bytes:
        """
        Raises:
            TruncatedCiphertextError: If blob is shorter than the nonce
            AuthenticationError: If the tag does not verify
        """
        blob = bytes(blob)
        if len(blob) < NONCE_SIZE:
            raise TruncatedCiphertextError(
                f"ciphertext too short: {len(blob)} bytes, nonce is {NONCE_SIZE}"
            )
        if len(blob) < NONCE_SIZE + TAG_SIZE:
            raise AuthenticationError("ciphertext has no complete authentication tag")
        try:
            return self._box.decrypt(blob[NONCE_SIZE:], blob[:NONCE_SIZE])
        except CryptoError as e:
            raise AuthenticationError("decryption failed: tampered blob or wrong key") from e


def encrypt(key_material: Union[str, bytes], plaintext: bytes) -> bytes:
    """Encrypt plaintext into a `nonce || ciphertext+tag` blob."""
    return SecretCipher(key_material).encrypt(plaintext)


def decrypt(key_material: Union[str, bytes], blob: bytes) -> bytes:
    """Decrypt a blob produced by encrypt()."""
    return SecretCipher(key_material).decrypt(blob)
