"""
Least-privilege storage access policy synthesis.

Translates requested list/read/write prefix sets into a provider access
policy document. Only the narrow prefix-based read/list/write shape the
platform needs is supported.

Wildcard rules:
- list: condition matches the bare prefix and prefix + "*"
- read: prefix + "*" unless the prefix already ends in "*"
- write: "*" as-is, trailing "/" means directory (prefix + "*"),
  anything else is a single literal object key
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

from .canonicalization import canonicalize_str
from .config import DIALECT_AWS, DIALECT_OSS
from .errors import ConfigurationError, MissingBucketError

WILDCARD = "*"


@dataclass(frozen=True)
class PolicyDialect:
    """Provider-specific spelling of the policy grammar."""
    version: str
    list_action: str
    get_action: str
    put_action: str
    prefix_condition_key: str
    resource_prefix: str

    def bucket_resource(self, bucket: str) -> str:
        return f"{self.resource_prefix}{bucket}"

    def object_resource(self, bucket: str, pattern: str) -> str:
        return f"{self.resource_prefix}{bucket}/{pattern}"


DIALECTS: Dict[str, PolicyDialect] = {
    DIALECT_OSS: PolicyDialect(
        version="1",
        list_action="oss:ListObjects",
        get_action="oss:GetObject",
        put_action="oss:PutObject",
        prefix_condition_key="oss:Prefix",
        resource_prefix="acs:oss:*:*:",
    ),
    DIALECT_AWS: PolicyDialect(
        version="2012-10-17",
        list_action="s3:ListBucket",
        get_action="s3:GetObject",
        put_action="s3:PutObject",
        prefix_condition_key="s3:prefix",
        resource_prefix="arn:aws:s3:::",
    ),
}


def get_dialect(name: str) -> PolicyDialect:
    try:
        return DIALECTS[(name or DIALECT_OSS).strip().lower()]
    except KeyError:
        raise ConfigurationError(f"unsupported policy dialect {name!r}") from None


def dedupe_prefixes(prefixes: Iterable[str]) -> List[str]:
    """Trim whitespace and leading slashes, drop blanks, keep first-seen order."""
    out: List[str] = []
    seen = set()
    for p in prefixes or ():
        p = (p or "").strip().lstrip("/")
        if not p or p in seen:
            continue
        seen.add(p)
        out.append(p)
    return out


def _list_patterns(prefixes: List[str]) -> List[str]:
    patterns: List[str] = []
    for p in prefixes:
        patterns.append(p)
        if not p.endswith(WILDCARD):
            patterns.append(p + WILDCARD)
    return patterns


def _read_pattern(prefix: str) -> str:
    return prefix if prefix.endswith(WILDCARD) else prefix + WILDCARD


def _write_pattern(prefix: str) -> str:
    if prefix.endswith(WILDCARD):
        return prefix
    if prefix.endswith("/"):
        return prefix + WILDCARD
    return prefix


def build_policy_dict(
    bucket: str,
    list_prefixes: Iterable[str] = (),
    read_prefixes: Iterable[str] = (),
    write_prefixes: Iterable[str] = (),
    dialect: str = DIALECT_OSS
) -> Dict[str, Any]:
    """
    Build the policy document as a dict.

    Statements with no prefixes are omitted; all-empty input yields a
    policy with zero statements.

    Raises:
        MissingBucketError: If bucket is blank
    """
    bucket = (bucket or "").strip()
    if not bucket:
        raise MissingBucketError("missing bucket")
    d = get_dialect(dialect)

    list_prefixes = dedupe_prefixes(list_prefixes)
    read_prefixes = dedupe_prefixes(read_prefixes)
    write_prefixes = dedupe_prefixes(write_prefixes)

    statements: List[Dict[str, Any]] = []

    if list_prefixes:
        # Listing is authorized on the bucket; the prefix restriction lives in the condition.
        statements.append({
            "Effect": "Allow",
            "Action": [d.list_action],
            "Resource": [d.bucket_resource(bucket)],
            "Condition": {
                "StringLike": {d.prefix_condition_key: _list_patterns(list_prefixes)},
            },
        })

    if read_prefixes:
        statements.append({
            "Effect": "Allow",
            "Action": [d.get_action],
            "Resource": [d.object_resource(bucket, _read_pattern(p)) for p in read_prefixes],
        })

    if write_prefixes:
        statements.append({
            "Effect": "Allow",
            "Action": [d.put_action],
            "Resource": [d.object_resource(bucket, _write_pattern(p)) for p in write_prefixes],
        })

    return {"Version": d.version, "Statement": statements}


def build_policy(
    bucket: str,
    list_prefixes: Iterable[str] = (),
    read_prefixes: Iterable[str] = (),
    write_prefixes: Iterable[str] = (),
    dialect: str = DIALECT_OSS
) -> str:
    """Build the policy document serialized as canonical JSON."""
    return canonicalize_str(
        build_policy_dict(bucket, list_prefixes, read_prefixes, write_prefixes, dialect=dialect)
    )
