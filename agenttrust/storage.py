"""
Object storage for agenttrust.

A provider-agnostic interface (put/get/list/exists) over a key namespace
rooted at a base prefix, with two providers:

- S3ObjectStore: any S3-compatible object storage service, via boto3
- LocalObjectStore: a directory tree with equivalent semantics

Every logical key is joined under the configured base prefix, so tenants
or environments sharing one bucket/root stay namespace-isolated.
"""

import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import PROVIDER_LOCAL, StorageConfig
from .errors import (
    ConfigurationError,
    InvalidObjectKeyError,
    NotFoundError,
    ProviderError,
    StorageIOError,
)

DEFAULT_LIST_LIMIT = 100
_STAGING_PREFIX = ".agenttrust-staging-"
_NOT_FOUND_CODES = ("NoSuchKey", "NotFound", "404")


def join_key(base_prefix: str, key: str) -> str:
    """Join a logical key under a base prefix with a single slash."""
    base_prefix = (base_prefix or "").strip().strip("/")
    key = (key or "").strip().lstrip("/")
    if not base_prefix:
        return key
    if not key:
        return base_prefix
    return base_prefix + "/" + key


def list_prefix(base_prefix: str, prefix: str) -> str:
    """
    Listing prefix for a logical prefix under a base prefix.

    The base prefix always keeps its trailing slash, so "tenant1" never
    matches keys under "tenant10".
    """
    base_prefix = (base_prefix or "").strip().strip("/")
    prefix = (prefix or "").strip().lstrip("/")
    if not base_prefix:
        return prefix
    return base_prefix + "/" + prefix


class ObjectStore(ABC):
    """Capability set shared by every storage provider."""

    @abstractmethod
    def put_object(self, key: str, content_type: str, body: bytes) -> None:
        """Write body under base_prefix/key."""

    @abstractmethod
    def get_object(self, key: str) -> bytes:
        """
        Read base_prefix/key.

        Raises:
            NotFoundError: If the key does not exist
        """

    @abstractmethod
    def list_objects(self, prefix: str, limit: int = DEFAULT_LIST_LIMIT) -> List[str]:
        """
        Return at most `limit` full keys starting with base_prefix/prefix.

        Ordering is provider-defined; a non-positive limit means 100.
        """

    @abstractmethod
    def exists(self, key: str) -> bool:
        """True if base_prefix/key exists. Only provider failures raise."""


# ============================================================
# Local filesystem
# ============================================================

class LocalObjectStore(ObjectStore):
    """
    Directory-backed object store.

    Writes stage to a unique temporary file in the destination directory
    and are renamed into place, so readers never see a partial object.
    """

    def __init__(self, root: str, base_prefix: str = ""):
        self._root = os.path.abspath(root)
        self._base_prefix = (base_prefix or "").strip().strip("/")
        self._base_root = self._path(self._base_prefix) if self._base_prefix else self._root

    @property
    def root(self) -> str:
        return self._root

    def _path(self, full_key: str) -> str:
        path = os.path.normpath(os.path.join(self._root, *full_key.split("/")))
        if path != self._root and not path.startswith(self._root + os.sep):
            raise InvalidObjectKeyError(f"key escapes storage root: {full_key!r}")
        return path

    def _object_path(self, key: str) -> Tuple[str, str]:
        full_key = join_key(self._base_prefix, key)
        path = self._path(full_key)
        if not path.startswith(self._base_root + os.sep):
            raise InvalidObjectKeyError(f"key escapes base prefix: {key!r}")
        return full_key, path

    def put_object(self, key: str, content_type: str, body: bytes) -> None:
        if not (key or "").strip() or key.endswith("/"):
            raise InvalidObjectKeyError(f"invalid object key: {key!r}")
        full_key, path = self._object_path(key)
        directory = os.path.dirname(path)
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=_STAGING_PREFIX, dir=directory)
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(body)
                    f.flush()
                    os.fsync(f.fileno())
                os.chmod(tmp, 0o644)
                os.replace(tmp, path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise StorageIOError(f"put {full_key}: {e}") from e

    def get_object(self, key: str) -> bytes:
        full_key, path = self._object_path(key)
        try:
            with open(path, "rb") as f:
                return f.read()
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as e:
            raise NotFoundError(f"object not found: {full_key}") from e
        except OSError as e:
            raise StorageIOError(f"get {full_key}: {e}") from e

    def list_objects(self, prefix: str, limit: int = DEFAULT_LIST_LIMIT) -> List[str]:
        if limit <= 0:
            limit = DEFAULT_LIST_LIMIT
        full_prefix = list_prefix(self._base_prefix, prefix)

        # Walk the deepest directory the prefix names, then filter by string prefix.
        if not full_prefix or full_prefix.endswith("/"):
            walk_key = full_prefix.rstrip("/")
        else:
            walk_key = full_prefix.rsplit("/", 1)[0] if "/" in full_prefix else ""
        walk_root = self._path(walk_key) if walk_key else self._root
        if not os.path.isdir(walk_root):
            return []

        out: List[str] = []
        try:
            for dirpath, dirnames, filenames in os.walk(walk_root):
                dirnames.sort()
                for name in sorted(filenames):
                    if name.startswith(_STAGING_PREFIX):
                        continue
                    rel = os.path.relpath(os.path.join(dirpath, name), self._root)
                    key = rel.replace(os.sep, "/")
                    if not key.startswith(full_prefix):
                        continue
                    out.append(key)
                    if len(out) >= limit:
                        return out
        except OSError as e:
            raise StorageIOError(f"list {full_prefix}: {e}") from e
        return out

    def exists(self, key: str) -> bool:
        full_key, path = self._object_path(key)
        try:
            os.stat(path)
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as e:
            raise StorageIOError(f"stat {full_key}: {e}") from e
        return os.path.isfile(path)


# ============================================================
# S3-compatible cloud storage
# ============================================================

def _error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


def _is_not_found(e: ClientError) -> bool:
    status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return status == 404 or _error_code(e) in _NOT_FOUND_CODES


class S3ObjectStore(ObjectStore):
    """Object store over the S3 API. The client is owned by the caller."""

    def __init__(self, client: Any, bucket: str, base_prefix: str = ""):
        self._client = client
        self._bucket = bucket
        self._base_prefix = (base_prefix or "").strip().strip("/")

    @property
    def bucket(self) -> str:
        return self._bucket

    def put_object(self, key: str, content_type: str, body: bytes) -> None:
        full_key = join_key(self._base_prefix, key)
        params: Dict[str, Any] = {"Bucket": self._bucket, "Key": full_key, "Body": body}
        if content_type and content_type.strip():
            params["ContentType"] = content_type.strip()
        try:
            self._client.put_object(**params)
        except (ClientError, BotoCoreError) as e:
            raise ProviderError(f"put {full_key}: {e}") from e

    def get_object(self, key: str) -> bytes:
        full_key = join_key(self._base_prefix, key)
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=full_key)
            body = resp["Body"]
            try:
                return body.read()
            finally:
                body.close()
        except ClientError as e:
            if _is_not_found(e):
                raise NotFoundError(f"object not found: {full_key}") from e
            raise ProviderError(f"get {full_key}: {e}") from e
        except BotoCoreError as e:
            raise ProviderError(f"get {full_key}: {e}") from e

    def list_objects(self, prefix: str, limit: int = DEFAULT_LIST_LIMIT) -> List[str]:
        if limit <= 0:
            limit = DEFAULT_LIST_LIMIT
        full_prefix = list_prefix(self._base_prefix, prefix)
        try:
            resp = self._client.list_objects_v2(Bucket=self._bucket, Prefix=full_prefix, MaxKeys=limit)
        except (ClientError, BotoCoreError) as e:
            raise ProviderError(f"list {full_prefix}: {e}") from e
        return [o["Key"] for o in resp.get("Contents", [])][:limit]

    def exists(self, key: str) -> bool:
        full_key = join_key(self._base_prefix, key)
        try:
            self._client.head_object(Bucket=self._bucket, Key=full_key)
            return True
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise ProviderError(f"head {full_key}: {e}") from e
        except BotoCoreError as e:
            raise ProviderError(f"head {full_key}: {e}") from e


def build_s3_client(config: StorageConfig):
    """
    Create the process-lifetime S3 client for a cloud configuration.

    Retries are disabled; retry policy belongs to the caller.
    """
    return boto3.client(
        "s3",
        endpoint_url=config.endpoint or None,
        region_name=config.region or None,
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.access_key_secret,
        config=BotoConfig(
            connect_timeout=config.request_timeout_seconds,
            read_timeout=config.request_timeout_seconds,
            retries={"max_attempts": 1, "mode": "standard"},
            s3={"addressing_style": "virtual"},
        ),
    )


def get_object_store(config: StorageConfig) -> ObjectStore:
    """
    Factory function to create the configured object store.

    Raises:
        ConfigurationError: If the configuration is incomplete for its provider
    """
    config.validate_store()
    if config.provider == PROVIDER_LOCAL:
        return LocalObjectStore(root=config.local_dir, base_prefix=config.base_prefix)
    return S3ObjectStore(build_s3_client(config), bucket=config.bucket, base_prefix=config.base_prefix)


# ============================================================
# Bucket lifecycle rules
# ============================================================

@dataclass(frozen=True)
class ExpirationRule:
    """Expire objects under `prefix` (relative to the base prefix) after `days`."""
    rule_id: str
    prefix: str
    days: int

    def validate(self) -> None:
        if not self.rule_id.strip():
            raise ConfigurationError("lifecycle rule id is required")
        if self.days < 1 or self.days > 3650:
            raise ConfigurationError(f"invalid expiration days for {self.rule_id}: {self.days}")


def apply_expiration_rules(
    client: Any,
    bucket: str,
    base_prefix: str,
    rules: Sequence[ExpirationRule]
) -> List[Dict[str, Any]]:
    """
    Merge expiration rules into the bucket's lifecycle configuration.

    Existing rules with the same IDs are replaced; all other rules are kept.

    Returns:
        The full rule list written to the bucket
    """
    for rule in rules:
        rule.validate()

    try:
        existing = client.get_bucket_lifecycle_configuration(Bucket=bucket).get("Rules", [])
    except ClientError as e:
        if _error_code(e) not in ("NoSuchLifecycleConfiguration", "NoSuchLifecycle"):
            raise ProviderError(f"get lifecycle {bucket}: {e}") from e
        existing = []
    except BotoCoreError as e:
        raise ProviderError(f"get lifecycle {bucket}: {e}") from e

    replaced = {r.rule_id for r in rules}
    merged = [r for r in existing if r.get("ID") not in replaced]
    for rule in rules:
        merged.append({
            "ID": rule.rule_id,
            "Filter": {"Prefix": join_key(base_prefix, rule.prefix)},
            "Status": "Enabled",
            "Expiration": {"Days": rule.days},
        })

    try:
        client.put_bucket_lifecycle_configuration(
            Bucket=bucket,
            LifecycleConfiguration={"Rules": merged},
        )
    except (ClientError, BotoCoreError) as e:
        raise ProviderError(f"put lifecycle {bucket}: {e}") from e
    return merged
