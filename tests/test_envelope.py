import pytest

from agenttrust.envelope import NONCE_SIZE, TAG_SIZE, SecretCipher, decrypt, derive_key, encrypt
from agenttrust.errors import AuthenticationError, MissingKeyError, TruncatedCiphertextError

KEY = "operator-held key material"


@pytest.mark.parametrize("plaintext", [b"", b"x", b"private key bytes" * 4, bytes(range(256)) * 16])
def test_round_trip(plaintext):
    assert decrypt(KEY, encrypt(KEY, plaintext)) == plaintext


def test_blob_layout():
    blob = encrypt(KEY, b"secret")
    assert NONCE_SIZE == 24
    assert TAG_SIZE == 16
    assert len(blob) == NONCE_SIZE + len(b"secret") + TAG_SIZE


def test_nonce_never_reused_in_sample():
    cipher = SecretCipher(KEY)
    nonces = {cipher.encrypt(b"same plaintext")[:NONCE_SIZE] for _ in range(2000)}
    assert len(nonces) == 2000


def test_same_plaintext_encrypts_differently():
    assert encrypt(KEY, b"p") != encrypt(KEY, b"p")


def test_key_material_is_trimmed():
    assert derive_key("  " + KEY + "\n") == derive_key(KEY)
    assert decrypt(" " + KEY, encrypt(KEY, b"p")) == b"p"
    assert derive_key(KEY.encode("utf-8")) == derive_key(KEY)


def test_wrong_key_fails_authentication():
    blob = encrypt(KEY, b"secret")
    with pytest.raises(AuthenticationError):
        decrypt("another key", blob)


def test_any_flipped_bit_fails_authentication():
    blob = encrypt(KEY, b"secret")
    cipher = SecretCipher(KEY)
    for i in range(len(blob)):
        for bit in range(8):
            tampered = bytearray(blob)
            tampered[i] ^= 1 << bit
            with pytest.raises(AuthenticationError):
                cipher.decrypt(bytes(tampered))


def test_blob_shorter_than_nonce():
    blob = encrypt(KEY, b"secret")
    with pytest.raises(TruncatedCiphertextError):
        decrypt(KEY, blob[:NONCE_SIZE - 1])
    with pytest.raises(TruncatedCiphertextError):
        decrypt(KEY, b"")


def test_blob_without_complete_tag():
    blob = encrypt(KEY, b"secret")
    with pytest.raises(AuthenticationError):
        decrypt(KEY, blob[:NONCE_SIZE + TAG_SIZE - 1])


@pytest.mark.parametrize("material", ["", "   ", b"", b" \n"])
def test_blank_key_material_rejected(material):
    with pytest.raises(MissingKeyError):
        encrypt(material, b"p")
    with pytest.raises(MissingKeyError):
        SecretCipher(material)
