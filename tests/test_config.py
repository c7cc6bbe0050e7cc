import pytest

from agenttrust.config import (
    DEFAULT_CERT_TTL_SECONDS,
    StorageConfig,
    TrustConfig,
    clamp_sts_duration,
    is_debug,
    logging_settings,
)
from agenttrust.errors import ConfigurationError

CLOUD_ENV = {
    "AGENTTRUST_OSS_PROVIDER": " Cloud ",
    "AGENTTRUST_OSS_ENDPOINT": "https://oss-cn-hangzhou.aliyuncs.com",
    "AGENTTRUST_OSS_REGION": "cn-hangzhou",
    "AGENTTRUST_OSS_BUCKET": "agent-bucket",
    "AGENTTRUST_OSS_BASE_PREFIX": "/prod/",
    "AGENTTRUST_OSS_ACCESS_KEY_ID": "id",
    "AGENTTRUST_OSS_ACCESS_KEY_SECRET": "secret",
    "AGENTTRUST_OSS_STS_ROLE_ARN": "acs:ram::1234567890123456:role/agent-storage",
}


def test_storage_from_env():
    config = StorageConfig.from_env(CLOUD_ENV)
    assert config.provider == "cloud"
    assert config.base_prefix == "prod"
    assert config.sts_duration_seconds == 900
    assert config.policy_dialect == "aws"
    assert config.request_timeout_seconds == 10.0
    config.validate_store()
    config.validate_sts()


def test_storage_from_process_env(monkeypatch, tmp_path):
    monkeypatch.setenv("AGENTTRUST_OSS_PROVIDER", "local")
    monkeypatch.setenv("AGENTTRUST_OSS_LOCAL_DIR", str(tmp_path))
    config = StorageConfig.from_env()
    assert config.provider == "local"
    assert config.local_dir == str(tmp_path)
    config.validate_store()


@pytest.mark.parametrize("raw,expected", [("10", 60), ("1800", 1800), ("99999", 3600), ("abc", 900), ("", 900)])
def test_sts_duration_clamped(raw, expected):
    config = StorageConfig.from_env(dict(CLOUD_ENV, AGENTTRUST_OSS_STS_DURATION_SECONDS=raw))
    assert config.sts_duration_seconds == expected


def test_clamp_sts_duration():
    assert clamp_sts_duration(-5) == 60
    assert clamp_sts_duration(3601) == 3600


@pytest.mark.parametrize("missing", [
    "AGENTTRUST_OSS_ENDPOINT",
    "AGENTTRUST_OSS_BUCKET",
    "AGENTTRUST_OSS_ACCESS_KEY_ID",
    "AGENTTRUST_OSS_ACCESS_KEY_SECRET",
])
def test_cloud_store_requires(missing):
    env = {k: v for k, v in CLOUD_ENV.items() if k != missing}
    with pytest.raises(ConfigurationError):
        StorageConfig.from_env(env).validate_store()


@pytest.mark.parametrize("missing", [
    "AGENTTRUST_OSS_REGION",
    "AGENTTRUST_OSS_ACCESS_KEY_ID",
    "AGENTTRUST_OSS_STS_ROLE_ARN",
])
def test_cloud_sts_requires(missing):
    env = {k: v for k, v in CLOUD_ENV.items() if k != missing}
    with pytest.raises(ConfigurationError):
        StorageConfig.from_env(env).validate_sts()


def test_local_requires_dir():
    config = StorageConfig.from_env({"AGENTTRUST_OSS_PROVIDER": "local"})
    with pytest.raises(ConfigurationError):
        config.validate_store()
    config.validate_sts()


@pytest.mark.parametrize("env", [
    {},
    {"AGENTTRUST_OSS_PROVIDER": "gcs"},
    dict(CLOUD_ENV, AGENTTRUST_OSS_POLICY_DIALECT="azure"),
    dict(CLOUD_ENV, AGENTTRUST_OSS_REQUEST_TIMEOUT_SECONDS="-1"),
])
def test_invalid_settings(env):
    with pytest.raises(ConfigurationError):
        StorageConfig.from_env(env).validate_store()


def test_aws_dialect_selectable():
    config = StorageConfig.from_env(dict(CLOUD_ENV, AGENTTRUST_OSS_POLICY_DIALECT="AWS"))
    assert config.policy_dialect == "aws"
    config.validate_store()


def test_trust_config_defaults():
    config = TrustConfig.from_env({})
    assert config.cert_issuer == "agenttrust"
    assert config.cert_ttl_seconds == DEFAULT_CERT_TTL_SECONDS
    assert config.keyring_object_key == "platform/signing_keys.json"
    with pytest.raises(ConfigurationError):
        config.validate()


def test_trust_config_from_env():
    config = TrustConfig.from_env({
        "AGENTTRUST_PLATFORM_KEYS_ENCRYPTION_KEY": " secret ",
        "AGENTTRUST_PLATFORM_CERT_ISSUER": "aihub",
        "AGENTTRUST_PLATFORM_CERT_TTL_SECONDS": "5",
    })
    assert config.keys_encryption_key == "secret"
    assert config.cert_issuer == "aihub"
    assert config.cert_ttl_seconds == 60
    assert "secret" not in repr(config)
    config.validate()


def test_logging_settings():
    assert logging_settings({}) == {"level": "INFO", "json_format": True}
    assert logging_settings({"AGENTTRUST_LOG_LEVEL": "debug", "AGENTTRUST_LOG_JSON": "0"}) == {
        "level": "DEBUG",
        "json_format": False,
    }
    assert is_debug({"AGENTTRUST_DEBUG": "true"})
    assert not is_debug({})


def test_local_provider_defaults_to_oss_dialect():
    assert StorageConfig.from_env({"AGENTTRUST_OSS_PROVIDER": "local"}).policy_dialect == "oss"


def test_cloud_sts_rejects_oss_dialect():
    config = StorageConfig.from_env(dict(CLOUD_ENV, AGENTTRUST_OSS_POLICY_DIALECT="oss"))
    config.validate_store()
    with pytest.raises(ConfigurationError):
        config.validate_sts()
