import argparse
import json

import pytest

from agenttrust.cli import main, parse_rule
from agenttrust.storage import ExpirationRule


@pytest.fixture
def local_env(monkeypatch, tmp_path):
    monkeypatch.setenv("AGENTTRUST_OSS_PROVIDER", "local")
    monkeypatch.setenv("AGENTTRUST_OSS_LOCAL_DIR", str(tmp_path / "objects"))
    monkeypatch.setenv("AGENTTRUST_OSS_BUCKET", "agent-bucket")
    monkeypatch.setenv("AGENTTRUST_OSS_BASE_PREFIX", "tenant1")
    monkeypatch.setenv("AGENTTRUST_PLATFORM_KEYS_ENCRYPTION_KEY", "keyring secret")
    monkeypatch.setenv("AGENTTRUST_LOG_LEVEL", "WARNING")


@pytest.fixture
def signed_files(tmp_path, capsys):
    key_file = tmp_path / "key.json"
    keys_file = tmp_path / "keys.json"
    task_file = tmp_path / "task.json"
    signed_file = tmp_path / "task.signed.json"
    task_file.write_text(json.dumps({"task_id": "t1", "amount": 10}))

    assert main(["keygen", "-k", "k1", "-o", str(key_file), "--keyset-output", str(keys_file)]) == 0
    assert main(["sign", "-f", str(task_file), "-k", str(key_file), "--ttl", "3600", "-o", str(signed_file)]) == 0
    capsys.readouterr()
    return key_file, keys_file, signed_file


def test_keygen_prints_key_pair(capsys):
    assert main(["keygen", "-k", "k1"]) == 0
    key = json.loads(capsys.readouterr().out)
    assert key["key_id"] == "k1"
    assert key["alg"] == "Ed25519"
    assert key["public_key"] and key["private_key"]


def test_sign_and_verify(signed_files, capsys):
    _, keys_file, signed_file = signed_files
    signed = json.loads(signed_file.read_text())
    assert signed["cert"]["key_id"] == "k1"

    assert main(["verify", "-f", str(signed_file), "--keys-file", str(keys_file)]) == 0
    assert capsys.readouterr().out.strip() == "OK"


def test_verify_rejects_tampered_object(signed_files, capsys):
    _, keys_file, signed_file = signed_files
    signed = json.loads(signed_file.read_text())
    signed["amount"] = 11
    signed_file.write_text(json.dumps(signed))

    assert main(["verify", "-f", str(signed_file), "--keys-file", str(keys_file)]) == 1
    assert "signature_mismatch" in capsys.readouterr().err


def test_verify_missing_keys_file(signed_files, tmp_path, capsys):
    _, _, signed_file = signed_files
    assert main(["verify", "-f", str(signed_file), "--keys-file", str(tmp_path / "none.json")]) == 1
    assert "io_error" in capsys.readouterr().err


def test_sign_rejects_key_file_without_key_id(tmp_path, capsys):
    (tmp_path / "task.json").write_text("{}")
    (tmp_path / "key.json").write_text('{"private_key": "AAAA"}')
    assert main(["sign", "-f", str(tmp_path / "task.json"), "-k", str(tmp_path / "key.json")]) == 1
    assert "decoding_error" in capsys.readouterr().err


def test_policy_command(capsys):
    assert main(["policy", "-b", "b", "--list", "agents/*", "--read", "tasks/x.json", "--write", "tasks/"]) == 0
    policy = json.loads(capsys.readouterr().out)
    assert policy["Version"] == "1"
    assert len(policy["Statement"]) == 3


def test_policy_command_compact(capsys):
    assert main(["policy", "-b", "b", "--compact"]) == 0
    assert capsys.readouterr().out.strip() == '{"Statement":[],"Version":"1"}'


def test_encrypt_decrypt(local_env, tmp_path):
    plain, blob, out = tmp_path / "plain.bin", tmp_path / "blob.bin", tmp_path / "out.bin"
    plain.write_bytes(b"platform secret")
    assert main(["encrypt", "-i", str(plain), "-o", str(blob)]) == 0
    assert blob.read_bytes() != b"platform secret"
    assert main(["decrypt", "-i", str(blob), "-o", str(out)]) == 0
    assert out.read_bytes() == b"platform secret"


def test_encrypt_requires_key(tmp_path, capsys):
    plain = tmp_path / "plain.bin"
    plain.write_bytes(b"x")
    assert main(["encrypt", "-i", str(plain), "-o", str(tmp_path / "blob.bin")]) == 2
    assert "invalid_configuration" in capsys.readouterr().err


def test_decrypt_tampered_blob(local_env, tmp_path, capsys):
    plain, blob = tmp_path / "plain.bin", tmp_path / "blob.bin"
    plain.write_bytes(b"platform secret")
    main(["encrypt", "-i", str(plain), "-o", str(blob)])
    data = bytearray(blob.read_bytes())
    data[-1] ^= 0x80
    blob.write_bytes(bytes(data))
    assert main(["decrypt", "-i", str(blob), "-o", str(tmp_path / "out.bin")]) == 1
    assert "authentication_failed" in capsys.readouterr().err


def test_keys_lifecycle(local_env, tmp_path, capsys):
    assert main(["keys", "rotate"]) == 0
    rotated = json.loads(capsys.readouterr().out)
    assert rotated["key_id"].startswith("platform_ed25519_")

    assert main(["keys", "list"]) == 0
    listed = json.loads(capsys.readouterr().out)["keys"]
    assert [k["key_id"] for k in listed] == [rotated["key_id"]]
    assert "private_key_enc" not in listed[0]

    keys_file = tmp_path / "published.json"
    assert main(["keys", "publish", "-o", str(keys_file)]) == 0
    assert json.loads(keys_file.read_text())["keys"][0]["key_id"] == rotated["key_id"]

    assert main(["keys", "revoke", rotated["key_id"]]) == 0
    assert main(["keys", "publish"]) == 0
    assert json.loads(capsys.readouterr().out) == {"keys": []}

    assert main(["keys", "revoke", rotated["key_id"]]) == 1


def test_credentials_local(local_env, capsys):
    assert main(["credentials", "-s", "agent-1", "--read", "tasks/t1.json", "--write", "results/"]) == 0
    creds = json.loads(capsys.readouterr().out)
    assert creds["provider"] == "local"
    assert creds["bucket"] == "agent-bucket"
    assert creds["granted_prefixes"] == ["tenant1/tasks/t1.json", "tenant1/results/"]


def test_credentials_unconfigured(capsys):
    assert main(["credentials", "-s", "agent-1"]) == 2


def test_lifecycle_requires_apply(local_env):
    assert main(["lifecycle"]) == 2


def test_lifecycle_requires_cloud(local_env, capsys):
    assert main(["lifecycle", "--apply"]) == 2
    assert "cloud" in capsys.readouterr().err


def test_parse_rule():
    assert parse_rule("tasks:tasks/:90") == ExpirationRule("tasks", "tasks/", 90)
    with pytest.raises(argparse.ArgumentTypeError):
        parse_rule("tasks:90")


def test_no_command_prints_help(capsys):
    assert main([]) == 2


def test_keys_certify_then_verify(local_env, tmp_path, capsys):
    task_file, signed_file, keys_file = tmp_path / "task.json", tmp_path / "signed.json", tmp_path / "keys.json"
    task_file.write_text(json.dumps({"task_id": "t1", "amount": 10}))

    assert main(["keys", "certify", "-f", str(task_file)]) == 2
    assert "no active platform signing keys" in capsys.readouterr().err

    assert main(["keys", "rotate"]) == 0
    assert main(["keys", "certify", "-f", str(task_file), "-o", str(signed_file)]) == 0
    assert main(["keys", "publish", "-o", str(keys_file)]) == 0
    capsys.readouterr()

    signed = json.loads(signed_file.read_text())
    assert signed["cert"]["issuer"] == "agenttrust"
    assert main(["verify", "-f", str(signed_file), "--keys-file", str(keys_file)]) == 0
    assert capsys.readouterr().out.strip() == "OK"


def test_failure_logged_with_error_kind(capsys):
    assert main(["credentials", "-s", "agent-1"]) == 2
    err = capsys.readouterr().err
    logged = json.loads(next(line for line in err.splitlines() if line.startswith("{")))
    assert logged["command"] == "credentials"
    assert logged["error"]["kind"] == "configuration"
    assert logged["error"]["code"] == "invalid_configuration"


def test_lifecycle_rejects_out_of_range_days(monkeypatch, capsys):
    monkeypatch.setenv("AGENTTRUST_OSS_PROVIDER", "cloud")
    monkeypatch.setenv("AGENTTRUST_OSS_ENDPOINT", "https://s3.example.com")
    monkeypatch.setenv("AGENTTRUST_OSS_BUCKET", "agent-bucket")
    monkeypatch.setenv("AGENTTRUST_OSS_ACCESS_KEY_ID", "id")
    monkeypatch.setenv("AGENTTRUST_OSS_ACCESS_KEY_SECRET", "secret")
    assert main(["lifecycle", "--apply", "--rule", "tasks:tasks/:0"]) == 2
    assert "invalid expiration days" in capsys.readouterr().err


def test_verify_unencodable_payload_fails_cleanly(signed_files, capsys):
    _, keys_file, signed_file = signed_files
    signed_file.write_text(signed_file.read_text().replace('"t1"', '"\\ud800"'))
    assert main(["verify", "-f", str(signed_file), "--keys-file", str(keys_file)]) == 1
    assert "unserializable_value" in capsys.readouterr().err
