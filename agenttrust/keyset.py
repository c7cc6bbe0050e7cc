"""
Key set resolution for agenttrust.

A key set is the published list of currently valid platform public keys.
Several keys may be valid at once so that rotation never invalidates
certifications issued under an older key. Verifiers must consult a live
key set rather than hardcoding a single key.
"""

import json
from typing import Any, Dict, Iterable, Iterator, List, Optional

import requests
from pydantic import ValidationError

from .errors import DecodingError, StorageIOError, TransportError, UnknownKeyError
from .models import KeySetDocument, PublicKeyEntry

DEFAULT_FETCH_TIMEOUT = 10.0


class KeySet:
    """Ordered, immutable collection of public keys indexed by key_id."""

    def __init__(self, entries: Iterable[PublicKeyEntry] = ()):
        self._entries = tuple(entries)

    def __iter__(self) -> Iterator[PublicKeyEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def key_ids(self) -> List[str]:
        return [e.key_id for e in self._entries]

    def resolve(self, key_id: str) -> PublicKeyEntry:
        """
        Find the entry for key_id by exact match. First match wins.

        Raises:
            UnknownKeyError: If no entry matches
        """
        for entry in self._entries:
            if entry.key_id.strip() == key_id:
                return entry
        raise UnknownKeyError(f"unknown key_id: {key_id}")

    def to_dict(self) -> Dict[str, Any]:
        return KeySetDocument(keys=list(self._entries)).model_dump(exclude_none=True)

    @classmethod
    def from_dict(cls, doc: Any) -> "KeySet":
        """
        Build a key set from a parsed key-set document.

        Raises:
            DecodingError: If the document does not have the key-set shape
        """
        try:
            parsed = KeySetDocument.model_validate(doc)
        except ValidationError as e:
            raise DecodingError(f"invalid key set document: {e.error_count()} error(s)") from e
        return cls(parsed.keys)

    @classmethod
    def from_json(cls, raw: Any) -> "KeySet":
        try:
            doc = json.loads(raw)
        except (ValueError, TypeError) as e:
            raise DecodingError(f"invalid key set JSON: {e}") from e
        return cls.from_dict(doc)


def load_key_set_file(path: str) -> KeySet:
    """Load a key set from a local JSON file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read()
    except OSError as e:
        raise StorageIOError(f"read key set {path}: {e}") from e
    return KeySet.from_json(raw)


def fetch_key_set(
    url: str,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
    session: Optional[requests.Session] = None
) -> KeySet:
    """
    Fetch a key set over HTTP GET.

    The fetch itself is unauthenticated; serve the key set over TLS from a
    trusted host. A failed or timed-out fetch raises TransportError and
    must never be read as a trust decision.

    Args:
        url: Key set URL
        timeout: Seconds before the request is abandoned
        session: Optional requests session to reuse connections

    Raises:
        TransportError: On connection failure, timeout or non-2xx status
        DecodingError: If the response body is not a key-set document
    """
    http = session or requests
    try:
        resp = http.get(url, timeout=timeout, headers={"Accept": "application/json"})
    except requests.RequestException as e:
        raise TransportError(f"fetch key set {url}: {e}") from e

    if resp.status_code < 200 or resp.status_code >= 300:
        raise TransportError(f"fetch key set {url}: http {resp.status_code}")
    return KeySet.from_json(resp.content)
