"""
Configuration module for agenttrust.

Centralizes all configuration with environment variable support and
construction-time validation. Invalid or missing settings for the selected
provider raise ConfigurationError before any client is created.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .errors import ConfigurationError

ENV_PREFIX = "AGENTTRUST_"

PROVIDER_CLOUD = "cloud"
PROVIDER_LOCAL = "local"
PROVIDERS = (PROVIDER_CLOUD, PROVIDER_LOCAL)

DIALECT_OSS = "oss"
DIALECT_AWS = "aws"

DEFAULT_STS_DURATION_SECONDS = 900  # 15 minutes
MIN_STS_DURATION_SECONDS = 60
MAX_STS_DURATION_SECONDS = 3600
DEFAULT_CERT_TTL_SECONDS = 86400 * 30
MIN_CERT_TTL_SECONDS = 60
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0
DEFAULT_KEYRING_OBJECT_KEY = "platform/signing_keys.json"


# ============================================================
# Environment helpers
# ============================================================

def _env(environ: Mapping[str, str], name: str, default: str = "") -> str:
    value = environ.get(ENV_PREFIX + name, "")
    value = value.strip() if isinstance(value, str) else ""
    return value or default


def getenv_int_default(environ: Mapping[str, str], name: str, fallback: int) -> int:
    """Read an integer setting; unparseable values fall back to the default."""
    raw = _env(environ, name)
    if not raw:
        return fallback
    try:
        return int(raw)
    except ValueError:
        return fallback


def getenv_float_default(environ: Mapping[str, str], name: str, fallback: float) -> float:
    raw = _env(environ, name)
    if not raw:
        return fallback
    try:
        return float(raw)
    except ValueError:
        return fallback


def clamp_sts_duration(seconds: int) -> int:
    return max(MIN_STS_DURATION_SECONDS, min(MAX_STS_DURATION_SECONDS, seconds))


# ============================================================
# Storage / STS configuration
# ============================================================

@dataclass(frozen=True)
class StorageConfig:
    """Drives construction of both the object store and the credential issuer."""
    provider: str = ""
    endpoint: str = ""
    region: str = ""
    bucket: str = ""
    base_prefix: str = ""
    access_key_id: str = ""
    access_key_secret: str = ""
    sts_role_arn: str = ""
    sts_endpoint: str = ""
    sts_duration_seconds: int = DEFAULT_STS_DURATION_SECONDS
    local_dir: str = ""
    policy_dialect: str = ""
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS

    def __post_init__(self):
        object.__setattr__(self, "provider", self.provider.strip().lower())
        object.__setattr__(self, "base_prefix", self.base_prefix.strip().strip("/"))
        # Cloud credentials come from boto3 STS, which takes the AWS policy grammar.
        default_dialect = DIALECT_AWS if self.provider == PROVIDER_CLOUD else DIALECT_OSS
        object.__setattr__(self, "policy_dialect", self.policy_dialect.strip().lower() or default_dialect)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StorageConfig":
        env = os.environ if environ is None else environ
        return cls(
            provider=_env(env, "OSS_PROVIDER"),
            endpoint=_env(env, "OSS_ENDPOINT"),
            region=_env(env, "OSS_REGION"),
            bucket=_env(env, "OSS_BUCKET"),
            base_prefix=_env(env, "OSS_BASE_PREFIX"),
            access_key_id=_env(env, "OSS_ACCESS_KEY_ID"),
            access_key_secret=_env(env, "OSS_ACCESS_KEY_SECRET"),
            sts_role_arn=_env(env, "OSS_STS_ROLE_ARN"),
            sts_endpoint=_env(env, "OSS_STS_ENDPOINT"),
            sts_duration_seconds=clamp_sts_duration(
                getenv_int_default(env, "OSS_STS_DURATION_SECONDS", DEFAULT_STS_DURATION_SECONDS)
            ),
            local_dir=_env(env, "OSS_LOCAL_DIR"),
            policy_dialect=_env(env, "OSS_POLICY_DIALECT"),
            request_timeout_seconds=getenv_float_default(
                env, "OSS_REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS
            ),
        )

    def validate_store(self) -> None:
        """
        Check settings needed to build an object store.

        Raises:
            ConfigurationError: If a required setting is missing
        """
        self._validate_common()
        if self.provider == PROVIDER_LOCAL:
            if not self.local_dir:
                raise ConfigurationError(
                    f"{ENV_PREFIX}OSS_LOCAL_DIR is required when {ENV_PREFIX}OSS_PROVIDER=local"
                )
            return
        missing = self._missing("endpoint", "bucket", "access_key_id", "access_key_secret")
        if missing:
            raise ConfigurationError(f"missing storage config for cloud provider: {', '.join(missing)}")

    def validate_sts(self) -> None:
        """
        Check settings needed to build a credential issuer.

        Raises:
            ConfigurationError: If a required setting is missing
        """
        self._validate_common()
        if self.provider == PROVIDER_LOCAL:
            return
        if not self.region:
            raise ConfigurationError(
                f"{ENV_PREFIX}OSS_REGION is required when {ENV_PREFIX}OSS_PROVIDER=cloud"
            )
        missing = self._missing("access_key_id", "access_key_secret", "sts_role_arn")
        if missing:
            raise ConfigurationError(f"missing STS config: {', '.join(missing)}")
        if self.policy_dialect != DIALECT_AWS:
            raise ConfigurationError(
                f"cloud STS requires {ENV_PREFIX}OSS_POLICY_DIALECT=aws, got {self.policy_dialect!r}"
            )

    def _validate_common(self) -> None:
        if self.provider not in PROVIDERS:
            raise ConfigurationError(
                f"unsupported storage provider {self.provider!r} (set {ENV_PREFIX}OSS_PROVIDER=cloud|local)"
            )
        if self.policy_dialect not in (DIALECT_OSS, DIALECT_AWS):
            raise ConfigurationError(f"unsupported policy dialect {self.policy_dialect!r}")
        if self.request_timeout_seconds <= 0:
            raise ConfigurationError("request timeout must be positive")

    def _missing(self, *names: str) -> List[str]:
        return [n for n in names if not getattr(self, n)]


# ============================================================
# Platform trust configuration
# ============================================================

@dataclass(frozen=True)
class TrustConfig:
    keys_encryption_key: str = field(default="", repr=False)
    cert_issuer: str = "agenttrust"
    cert_ttl_seconds: int = DEFAULT_CERT_TTL_SECONDS
    keyring_object_key: str = DEFAULT_KEYRING_OBJECT_KEY

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TrustConfig":
        env = os.environ if environ is None else environ
        ttl = getenv_int_default(env, "PLATFORM_CERT_TTL_SECONDS", DEFAULT_CERT_TTL_SECONDS)
        return cls(
            keys_encryption_key=_env(env, "PLATFORM_KEYS_ENCRYPTION_KEY"),
            cert_issuer=_env(env, "PLATFORM_CERT_ISSUER", "agenttrust"),
            cert_ttl_seconds=max(MIN_CERT_TTL_SECONDS, ttl),
            keyring_object_key=_env(env, "KEYRING_OBJECT_KEY", DEFAULT_KEYRING_OBJECT_KEY),
        )

    def validate(self) -> None:
        if not self.keys_encryption_key:
            raise ConfigurationError(f"{ENV_PREFIX}PLATFORM_KEYS_ENCRYPTION_KEY is required")


# ============================================================
# Logging settings
# ============================================================

def logging_settings(environ: Optional[Mapping[str, str]] = None) -> Dict[str, object]:
    env = os.environ if environ is None else environ
    return {
        "level": _env(env, "LOG_LEVEL", "INFO").upper(),
        "json_format": _env(env, "LOG_JSON", "true").lower() in ("1", "true", "yes"),
    }


def is_debug(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Check if debug mode is enabled."""
    env = os.environ if environ is None else environ
    return _env(env, "DEBUG").lower() in ("1", "true", "yes")
