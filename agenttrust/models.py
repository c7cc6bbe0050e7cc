from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .util import ensure_utc, parse_rfc3339


class PublicKeyEntry(BaseModel):
    key_id: str
    alg: str = "Ed25519"
    public_key: str
    created_at: Optional[str] = None


class KeySetDocument(BaseModel):
    """Published signing key set: {"keys": [{"key_id", "alg", "public_key"}, ...]}"""
    keys: List[PublicKeyEntry] = Field(default_factory=list)


class STSCredentials(BaseModel):
    """
    Time-limited storage credential plus the context a caller needs to use it.

    Not verifiable on its own; callers must check `expiration` before use.
    """
    access_key_id: str
    access_key_secret: str
    security_token: str
    expiration: str

    provider: str
    bucket: str = ""
    endpoint: str = ""
    region: str = ""
    base_prefix: str = ""
    granted_prefixes: List[str] = Field(default_factory=list)

    def expires_at(self) -> datetime:
        return parse_rfc3339(self.expiration)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return ensure_utc(now) >= self.expires_at()
