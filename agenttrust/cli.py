#!/usr/bin/env python3
"""
agenttrust Command Line Interface

Usage:
    agenttrust keygen [--key-id <id>] [--output <file>] [--keyset-output <file>]
    agenttrust sign --file <file> --key-file <file> [--issuer <name>] [--ttl <seconds>]
    agenttrust verify --file <file|-> (--keys-file <file> | --keys-url <url>)
    agenttrust encrypt|decrypt --input <file> --output <file>
    agenttrust policy --bucket <name> [--list P] [--read P] [--write P]
    agenttrust credentials --session <name> [--list P] [--read P] [--write P]
    agenttrust keys rotate|revoke|list|publish|certify
    agenttrust lifecycle --apply [--rule ID:PREFIX:DAYS]
"""

import argparse
import json
import logging
import sys
from typing import Any, List, Optional

from .canonicalization import canonicalize_str
from .cert import certify_object
from .config import PROVIDER_CLOUD, StorageConfig, TrustConfig, is_debug, logging_settings
from .envelope import decrypt, encrypt
from .errors import AgentTrustError, ConfigurationError, DecodingError, ErrorKind, StorageIOError
from .keyring import PlatformKeyring
from .keyset import KeySet, fetch_key_set, load_key_set_file
from .logging_config import audit_log, configure_logging, set_request_id
from .models import PublicKeyEntry
from .policy import build_policy_dict
from .signing import ALG_ED25519, encode_private_key, encode_public_key, generate_keypair, parse_private_key
from .storage import ExpirationRule, apply_expiration_rules, build_s3_client, get_object_store
from .sts import get_credential_issuer, issue_scoped_credentials
from .util import utc_now
from .verifier import check_certified_object

logger = logging.getLogger("agenttrust.cli")

DEFAULT_LIFECYCLE_RULES = [
    "agenttrust_heartbeats_expire:agents/heartbeats/:7",
    "agenttrust_tasks_expire:tasks/:90",
]


def load_json(path: str) -> Any:
    """Load JSON from a file, or stdin when path is '-'."""
    try:
        if path == "-":
            raw = sys.stdin.read()
        else:
            with open(path, "r", encoding="utf-8") as f:
                raw = f.read()
    except OSError as e:
        raise StorageIOError(f"read {path}: {e}") from e
    try:
        return json.loads(raw)
    except ValueError as e:
        raise DecodingError(f"{path}: invalid JSON: {e}") from e


def emit_json(data: Any, path: Optional[str] = None) -> None:
    text = json.dumps(data, indent=2)
    if path:
        with open(path, "w", encoding="utf-8") as f:
            f.write(text + "\n")
        print(f"Saved to: {path}", file=sys.stderr)
    else:
        print(text)


def cmd_keygen(args) -> int:
    """Generate an Ed25519 key pair for offline signing."""
    public, private = generate_keypair()
    key_id = args.key_id or f"ed25519_{utc_now().strftime('%Y%m%d_%H%M%S')}"
    emit_json({
        "key_id": key_id,
        "alg": ALG_ED25519,
        "public_key": encode_public_key(public),
        "private_key": encode_private_key(private),
    }, args.output)
    if args.keyset_output:
        key_set = KeySet([PublicKeyEntry(key_id=key_id, alg=ALG_ED25519, public_key=encode_public_key(public))])
        emit_json(key_set.to_dict(), args.keyset_output)
    return 0


def cmd_sign(args) -> int:
    """Certify a JSON object with a key file produced by keygen."""
    obj = load_json(args.file)
    if not isinstance(obj, dict):
        raise DecodingError("object to sign must be a JSON object")
    key = load_json(args.key_file)
    if not isinstance(key, dict) or not key.get("key_id"):
        raise DecodingError(f"{args.key_file}: expected a key file with key_id and private_key")
    private = parse_private_key(key.get("private_key", ""))
    certified = certify_object(obj, private, key["key_id"], args.issuer, args.ttl)
    emit_json(certified, args.output)
    return 0


def cmd_verify(args) -> int:
    """Verify a certified object against a key set."""
    obj = load_json(args.file)
    if args.keys_file:
        key_set = load_key_set_file(args.keys_file)
    else:
        key_set = fetch_key_set(args.keys_url, timeout=args.timeout)

    result = check_certified_object(obj, key_set)
    if result.is_valid():
        print("OK")
        return 0
    audit_log.verification_rejected(result.code, result.reason, key_id=result.key_id)
    print(f"verify failed: {result.code}: {result.reason}", file=sys.stderr)
    return 1


def _encryption_key() -> str:
    trust = TrustConfig.from_env()
    trust.validate()
    return trust.keys_encryption_key


def _read_bytes(path: str) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        raise StorageIOError(f"read {path}: {e}") from e


def _write_bytes(path: str, data: bytes) -> None:
    try:
        with open(path, "wb") as f:
            f.write(data)
    except OSError as e:
        raise StorageIOError(f"write {path}: {e}") from e


def cmd_encrypt(args) -> int:
    _write_bytes(args.output, encrypt(_encryption_key(), _read_bytes(args.input)))
    return 0


def cmd_decrypt(args) -> int:
    _write_bytes(args.output, decrypt(_encryption_key(), _read_bytes(args.input)))
    return 0


def cmd_policy(args) -> int:
    """Print the least-privilege policy for a set of prefixes."""
    policy = build_policy_dict(args.bucket, args.list, args.read, args.write, dialect=args.dialect)
    if args.compact:
        print(canonicalize_str(policy))
    else:
        emit_json(policy)
    return 0


def cmd_credentials(args) -> int:
    """Issue scoped storage credentials from the environment configuration."""
    config = StorageConfig.from_env()
    issuer = get_credential_issuer(config)
    creds = issue_scoped_credentials(
        issuer,
        config,
        session_name=args.session,
        list_prefixes=args.list,
        read_prefixes=args.read,
        write_prefixes=args.write,
        duration_seconds=args.duration,
    )
    emit_json(creds.model_dump())
    return 0


def cmd_keys(args) -> int:
    """Manage platform signing keys."""
    trust = TrustConfig.from_env()
    store = get_object_store(StorageConfig.from_env())
    keyring = PlatformKeyring(store, trust.keys_encryption_key, trust.keyring_object_key)
    if args.keys_command == "rotate":
        emit_json(keyring.rotate().model_dump(exclude_none=True))
    elif args.keys_command == "revoke":
        keyring.revoke(args.key_id)
        print(f"revoked {args.key_id}", file=sys.stderr)
    elif args.keys_command == "list":
        emit_json({"keys": [
            {k: v for k, v in key.to_dict().items() if k != "private_key_enc"}
            for key in keyring.list_keys()
        ]})
    elif args.keys_command == "publish":
        emit_json(keyring.published_key_set().to_dict(), args.output)
    elif args.keys_command == "certify":
        obj = load_json(args.file)
        if not isinstance(obj, dict):
            raise DecodingError("object to certify must be a JSON object")
        emit_json(keyring.certify(obj, trust.cert_issuer, trust.cert_ttl_seconds), args.output)
    return 0


def parse_rule(value: str) -> ExpirationRule:
    parts = value.split(":")
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(f"expected ID:PREFIX:DAYS, got {value!r}")
    try:
        days = int(parts[2])
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid days in {value!r}") from None
    return ExpirationRule(rule_id=parts[0], prefix=parts[1], days=days)


def cmd_lifecycle(args) -> int:
    """Merge prefix expiration rules into the bucket lifecycle configuration."""
    if not args.apply:
        print("no action specified (use --apply)", file=sys.stderr)
        return 2
    config = StorageConfig.from_env()
    if config.provider != PROVIDER_CLOUD:
        raise ConfigurationError("lifecycle rules require AGENTTRUST_OSS_PROVIDER=cloud")
    config.validate_store()
    rules = args.rule or [parse_rule(r) for r in DEFAULT_LIFECYCLE_RULES]
    for rule in rules:
        rule.validate()
    merged = apply_expiration_rules(build_s3_client(config), config.bucket, config.base_prefix, rules)
    logger.info("lifecycle rules applied to bucket %s (%d rules)", config.bucket, len(merged))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agenttrust",
        description="Platform certification and scoped storage access tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  agenttrust keygen -o key.json --keyset-output keys.json
  agenttrust sign -f task.json -k key.json -o task.signed.json
  agenttrust verify -f task.signed.json --keys-file keys.json
  agenttrust policy -b my-bucket --list agents/ --read tasks/t1.json --write results/
  agenttrust keys rotate
        """
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    keygen_parser = subparsers.add_parser("keygen", help="Generate Ed25519 key pair")
    keygen_parser.add_argument("-k", "--key-id", help="Key identifier")
    keygen_parser.add_argument("-o", "--output", help="Output file for the key pair")
    keygen_parser.add_argument("--keyset-output", help="Output file for a one-key key set")

    sign_parser = subparsers.add_parser("sign", help="Certify a JSON object")
    sign_parser.add_argument("-f", "--file", required=True, help="JSON object file ('-' for stdin)")
    sign_parser.add_argument("-k", "--key-file", required=True, help="Key pair file from keygen")
    sign_parser.add_argument("--issuer", default="agenttrust", help="Cert issuer")
    sign_parser.add_argument("--ttl", type=int, default=86400, help="Cert lifetime in seconds")
    sign_parser.add_argument("-o", "--output", help="Output file")

    verify_parser = subparsers.add_parser("verify", help="Verify a certified object")
    verify_parser.add_argument("-f", "--file", required=True, help="Certified JSON file ('-' for stdin)")
    keys_source = verify_parser.add_mutually_exclusive_group(required=True)
    keys_source.add_argument("--keys-file", help="Key set JSON file")
    keys_source.add_argument("--keys-url", help="Key set URL")
    verify_parser.add_argument("--timeout", type=float, default=10.0, help="Key set fetch timeout (seconds)")

    for name, help_text in (("encrypt", "Envelope-encrypt a file"), ("decrypt", "Decrypt an envelope blob")):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("-i", "--input", required=True, help="Input file")
        p.add_argument("-o", "--output", required=True, help="Output file")

    policy_parser = subparsers.add_parser("policy", help="Build a least-privilege policy")
    policy_parser.add_argument("-b", "--bucket", required=True, help="Bucket name")
    policy_parser.add_argument("--dialect", default="oss", choices=["oss", "aws"], help="Policy grammar")
    policy_parser.add_argument("--compact", action="store_true", help="Print canonical JSON")
    policy_parser.add_argument("--list", action="append", default=[], help="List prefix (repeatable)")
    policy_parser.add_argument("--read", action="append", default=[], help="Read prefix (repeatable)")
    policy_parser.add_argument("--write", action="append", default=[], help="Write prefix or key (repeatable)")

    creds_parser = subparsers.add_parser("credentials", help="Issue scoped storage credentials")
    creds_parser.add_argument("-s", "--session", required=True, help="Session name")
    creds_parser.add_argument("--duration", type=int, help="Lifetime in seconds")
    creds_parser.add_argument("--list", action="append", default=[], help="List prefix (repeatable)")
    creds_parser.add_argument("--read", action="append", default=[], help="Read prefix (repeatable)")
    creds_parser.add_argument("--write", action="append", default=[], help="Write prefix or key (repeatable)")

    keys_parser = subparsers.add_parser("keys", help="Manage platform signing keys")
    keys_sub = keys_parser.add_subparsers(dest="keys_command", required=True)
    keys_sub.add_parser("rotate", help="Create a new active signing key")
    revoke_parser = keys_sub.add_parser("revoke", help="Revoke a signing key")
    revoke_parser.add_argument("key_id", help="Key identifier")
    keys_sub.add_parser("list", help="List all keys")
    publish_parser = keys_sub.add_parser("publish", help="Print the published key set")
    publish_parser.add_argument("-o", "--output", help="Output file")
    certify_parser = keys_sub.add_parser("certify", help="Certify a JSON object with the active key")
    certify_parser.add_argument("-f", "--file", required=True, help="JSON object file ('-' for stdin)")
    certify_parser.add_argument("-o", "--output", help="Output file")

    lifecycle_parser = subparsers.add_parser("lifecycle", help="Apply bucket expiration rules")
    lifecycle_parser.add_argument("--apply", action="store_true", help="Apply/merge rules into the bucket")
    lifecycle_parser.add_argument("--rule", action="append", type=parse_rule,
                                  help="ID:PREFIX:DAYS (repeatable; default heartbeats 7d, tasks 90d)")

    return parser


COMMANDS = {
    "keygen": cmd_keygen,
    "sign": cmd_sign,
    "verify": cmd_verify,
    "encrypt": cmd_encrypt,
    "decrypt": cmd_decrypt,
    "policy": cmd_policy,
    "credentials": cmd_credentials,
    "keys": cmd_keys,
    "lifecycle": cmd_lifecycle,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(**logging_settings())
    set_request_id()

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 2

    try:
        return handler(args)
    except AgentTrustError as e:
        logger.error(
            "%s failed", args.command,
            exc_info=is_debug(),
            extra={"extra_fields": {"command": args.command, "error": e.to_dict()}},
        )
        print(f"{args.command} failed: {e.code}: {e.message}", file=sys.stderr)
        return 2 if e.kind is ErrorKind.CONFIGURATION else 1


if __name__ == "__main__":
    sys.exit(main())
