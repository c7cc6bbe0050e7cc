"""
Scoped, time-limited storage credentials.

A CredentialIssuer exchanges a policy document for a short-lived
credential. The cloud issuer calls a security token service; the local
issuer is a developer stand-in that returns a random opaque token with no
cryptographic binding to the granted prefixes. It is not a security
boundary and must only be used with the local object store.

Every call produces a fresh credential; nothing is cached.
"""

import logging
import re
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Iterable, List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import PROVIDER_LOCAL, StorageConfig, clamp_sts_duration
from .errors import AssumeRoleError, ProviderError
from .logging_config import audit_log
from .models import STSCredentials
from .policy import build_policy, dedupe_prefixes
from .storage import join_key
from .util import ensure_utc, format_rfc3339, generate_token, utc_now

logger = logging.getLogger(__name__)

LOCAL_ACCESS_KEY = "local"
PROVIDER_LOCAL_STS = "local"
PROVIDER_CLOUD_STS = "cloud_sts"


class CredentialIssuer(ABC):
    """Abstract interface for exchanging a policy for temporary credentials."""

    @abstractmethod
    def assume_role(self, session_name: str, policy: str, duration_seconds: int) -> STSCredentials:
        """
        Issue credentials restricted by `policy` for `duration_seconds`.

        Args:
            session_name: Identifies the holder in provider audit logs
            policy: Policy document JSON (see agenttrust.policy)
            duration_seconds: Requested lifetime

        Returns:
            Fresh STSCredentials
        """
        pass


class LocalCredentialIssuer(CredentialIssuer):
    """Local stand-in: placeholder access key plus a random opaque token."""

    def __init__(self, config: StorageConfig):
        self._config = config

    def assume_role(self, session_name: str, policy: str, duration_seconds: int) -> STSCredentials:
        if duration_seconds <= 0:
            duration_seconds = self._config.sts_duration_seconds
        expiration = utc_now() + timedelta(seconds=duration_seconds)
        return STSCredentials(
            provider=PROVIDER_LOCAL_STS,
            access_key_id=LOCAL_ACCESS_KEY,
            access_key_secret=LOCAL_ACCESS_KEY,
            security_token=generate_token(32),
            expiration=format_rfc3339(expiration),
            bucket=self._config.bucket,
            endpoint=self._config.endpoint,
            region=self._config.region,
            base_prefix=self._config.base_prefix,
        )


class CloudCredentialIssuer(CredentialIssuer):
    """
    Security token service issuer via the STS AssumeRole API.

    The client is created once by the caller and shared across calls.
    """

    def __init__(self, client: Any, role_arn: str):
        self._client = client
        self._role_arn = role_arn

    def assume_role(self, session_name: str, policy: str, duration_seconds: int) -> STSCredentials:
        try:
            resp = self._client.assume_role(
                RoleArn=self._role_arn,
                RoleSessionName=session_name,
                Policy=policy,
                DurationSeconds=duration_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            raise ProviderError(f"sts assume role: {e}") from e

        creds = (resp or {}).get("Credentials") or {}
        if not creds.get("AccessKeyId") or not creds.get("SecretAccessKey"):
            raise AssumeRoleError("sts assume role returned empty credentials")

        expiration = creds.get("Expiration")
        if hasattr(expiration, "tzinfo"):
            expiration = format_rfc3339(ensure_utc(expiration))
        return STSCredentials(
            provider=PROVIDER_CLOUD_STS,
            access_key_id=creds["AccessKeyId"],
            access_key_secret=creds["SecretAccessKey"],
            security_token=creds.get("SessionToken", ""),
            expiration=str(expiration or ""),
        )


def build_sts_client(config: StorageConfig):
    return boto3.client(
        "sts",
        endpoint_url=config.sts_endpoint or None,
        region_name=config.region or None,
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.access_key_secret,
        config=BotoConfig(
            connect_timeout=config.request_timeout_seconds,
            read_timeout=config.request_timeout_seconds,
            retries={"max_attempts": 1, "mode": "standard"},
        ),
    )


def get_credential_issuer(config: StorageConfig) -> CredentialIssuer:
    """
    Factory function to create the configured credential issuer.

    Raises:
        ConfigurationError: If the configuration is incomplete for its provider
    """
    config.validate_sts()
    if config.provider == PROVIDER_LOCAL:
        logger.debug("using local credential issuer; tokens are not a security boundary")
        return LocalCredentialIssuer(config)
    return CloudCredentialIssuer(build_sts_client(config), role_arn=config.sts_role_arn)


def sanitize_session_name(name: str) -> str:
    # RoleSessionName: <= 64 chars from a limited charset.
    sanitized = re.sub(r"[^a-zA-Z0-9+=,.@_-]", "", name or "")
    return sanitized[:64] or "agenttrust-session"


def _scoped(base_prefix: str, prefixes: Iterable[str]) -> List[str]:
    return [join_key(base_prefix, p) for p in dedupe_prefixes(prefixes)]


def issue_scoped_credentials(
    issuer: CredentialIssuer,
    config: StorageConfig,
    session_name: str,
    list_prefixes: Iterable[str] = (),
    read_prefixes: Iterable[str] = (),
    write_prefixes: Iterable[str] = (),
    duration_seconds: Optional[int] = None
) -> STSCredentials:
    """
    Issue least-privilege credentials for logical prefixes under the base prefix.

    Prefixes are relative to the configured base prefix; trailing "/" and
    "*" keep their directory/wildcard meaning.

    Returns:
        Credentials enriched with bucket, endpoint, region, base prefix and
        the granted read/write prefixes
    """
    list_scoped = _scoped(config.base_prefix, list_prefixes)
    read_scoped = _scoped(config.base_prefix, read_prefixes)
    write_scoped = _scoped(config.base_prefix, write_prefixes)

    policy = build_policy(
        config.bucket,
        list_scoped,
        read_scoped,
        write_scoped,
        dialect=config.policy_dialect,
    )
    if not duration_seconds or duration_seconds <= 0:
        duration_seconds = config.sts_duration_seconds
    duration = clamp_sts_duration(duration_seconds)
    session = sanitize_session_name(session_name)

    creds = issuer.assume_role(session, policy, duration)
    creds = creds.model_copy(update={
        "bucket": config.bucket,
        "endpoint": config.endpoint,
        "region": config.region,
        "base_prefix": config.base_prefix,
        "granted_prefixes": read_scoped + write_scoped,
    })

    audit_log.credentials_issued(
        session_name=session,
        provider=creds.provider,
        expiration=creds.expiration,
        list_prefixes=list_scoped,
        read_prefixes=read_scoped,
        write_prefixes=write_scoped,
    )
    return creds
