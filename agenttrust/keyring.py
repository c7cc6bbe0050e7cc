"""
Platform signing keyring.

Holds the platform's Ed25519 signing keys in a single JSON document inside
an ObjectStore. Private keys are only ever stored envelope-encrypted.

Rotation adds a new key and makes it the active signer; older keys stay
published until revoked, so certifications they issued keep verifying
until they expire.
"""

import json
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .cert import certify_object
from .envelope import SecretCipher
from .errors import ConfigurationError, DecodingError, InvalidKeyError, NotFoundError
from .keyset import KeySet
from .logging_config import audit_log
from .models import PublicKeyEntry
from .signing import ALG_ED25519, PRIVATE_KEY_SIZE, generate_keypair, public_key_from_private
from .storage import ObjectStore
from .util import b64d, b64e, ensure_utc, format_rfc3339, parse_rfc3339

KEYRING_CONTENT_TYPE = "application/json"


@dataclass
class StoredSigningKey:
    key_id: str
    alg: str
    public_key: str
    private_key_enc: str
    created_at: str
    revoked_at: Optional[str] = None

    @property
    def revoked(self) -> bool:
        return bool(self.revoked_at)

    def public_entry(self) -> PublicKeyEntry:
        return PublicKeyEntry(key_id=self.key_id, alg=self.alg, public_key=self.public_key)

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "key_id": self.key_id,
            "alg": self.alg,
            "public_key": self.public_key,
            "private_key_enc": self.private_key_enc,
            "created_at": self.created_at,
        }
        if self.revoked_at:
            out["revoked_at"] = self.revoked_at
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StoredSigningKey":
        try:
            return cls(
                key_id=data["key_id"],
                alg=data.get("alg", ALG_ED25519),
                public_key=data["public_key"],
                private_key_enc=data["private_key_enc"],
                created_at=data["created_at"],
                revoked_at=data.get("revoked_at"),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise DecodingError(f"invalid keyring entry: {e}") from e


def new_key_id(now: datetime) -> str:
    return f"platform_ed25519_{now.strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"


class PlatformKeyring:
    """
    Signing keys for the platform certification authority.

    Thread-safe within one process; the read-modify-write of the keyring
    document is not coordinated across processes.
    """

    def __init__(self, store: ObjectStore, encryption_key: str, object_key: str):
        self._store = store
        self._encryption_key = encryption_key
        self._object_key = object_key
        self._lock = threading.RLock()

    def _cipher(self) -> SecretCipher:
        return SecretCipher(self._encryption_key)

    def _load(self) -> List[StoredSigningKey]:
        try:
            raw = self._store.get_object(self._object_key)
        except NotFoundError:
            return []
        try:
            doc = json.loads(raw)
        except ValueError as e:
            raise DecodingError(f"invalid keyring document: {e}") from e
        if not isinstance(doc, dict) or not isinstance(doc.get("keys", []), list):
            raise DecodingError("invalid keyring document shape")
        return [StoredSigningKey.from_dict(k) for k in doc.get("keys", [])]

    def _save(self, keys: List[StoredSigningKey]) -> None:
        body = json.dumps({"keys": [k.to_dict() for k in keys]}, indent=2).encode("utf-8")
        self._store.put_object(self._object_key, KEYRING_CONTENT_TYPE, body)

    @staticmethod
    def _newest_first(keys: List[StoredSigningKey]) -> List[StoredSigningKey]:
        # Ties on created_at fall back to insertion order, later wins.
        ordered = sorted(enumerate(keys), key=lambda ik: (parse_rfc3339(ik[1].created_at), ik[0]), reverse=True)
        return [k for _, k in ordered]

    def list_keys(self) -> List[StoredSigningKey]:
        """All keys, newest first, including revoked ones."""
        with self._lock:
            return self._newest_first(self._load())

    def rotate(self, now: Optional[datetime] = None) -> PublicKeyEntry:
        """
        Generate a new signing key and make it the active one.

        Raises:
            MissingKeyError: If no encryption key is configured
        """
        cipher = self._cipher()
        created = ensure_utc(now)
        public, private = generate_keypair()
        stored = StoredSigningKey(
            key_id=new_key_id(created),
            alg=ALG_ED25519,
            public_key=b64e(public),
            private_key_enc=b64e(cipher.encrypt(private)),
            created_at=format_rfc3339(created),
        )
        with self._lock:
            keys = self._load()
            keys.append(stored)
            self._save(keys)
        audit_log.signing_key_rotated(stored.key_id)
        return stored.public_entry()

    def revoke(self, key_id: str, now: Optional[datetime] = None) -> None:
        """
        Stop publishing and signing with a key.

        Raises:
            NotFoundError: If the key is unknown or already revoked
        """
        key_id = (key_id or "").strip()
        with self._lock:
            keys = self._load()
            for k in keys:
                if k.key_id == key_id and not k.revoked:
                    k.revoked_at = format_rfc3339(ensure_utc(now))
                    break
            else:
                raise NotFoundError(f"no active signing key {key_id!r}")
            self._save(keys)
        audit_log.signing_key_revoked(key_id)

    def published_key_set(self) -> KeySet:
        """Key set for verifiers: every non-revoked key, newest first."""
        return KeySet(k.public_entry() for k in self.list_keys() if not k.revoked)

    def active_signing_key(self) -> Tuple[str, str, bytes]:
        """
        Decrypt the newest non-revoked key.

        Returns:
            Tuple of (key_id, alg, private_key_bytes)

        Raises:
            ConfigurationError: If there is no active key
            AuthenticationError: If the stored key does not decrypt
        """
        cipher = self._cipher()
        active = [k for k in self.list_keys() if not k.revoked]
        if not active:
            raise ConfigurationError("no active platform signing keys (rotate one first)")
        current = active[0]

        private = cipher.decrypt(b64d(current.private_key_enc))
        if len(private) != PRIVATE_KEY_SIZE:
            raise InvalidKeyError("invalid platform private key length")
        if b64e(public_key_from_private(private)) != current.public_key:
            raise InvalidKeyError(f"stored key {current.key_id} does not match its public key")
        return current.key_id, current.alg, private

    def certify(
        self,
        obj: Mapping[str, Any],
        issuer: str,
        ttl_seconds: int,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Sign obj with the active key and return it with a cert attached."""
        key_id, alg, private = self.active_signing_key()
        certified = certify_object(obj, private, key_id, issuer, ttl_seconds, alg=alg, now=now)
        audit_log.object_certified(key_id, issuer, certified["cert"]["expires_at"])
        return certified
