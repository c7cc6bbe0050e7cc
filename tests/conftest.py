import logging
import os
from datetime import datetime, timezone

import pytest

from agenttrust.keyset import KeySet
from agenttrust.models import PublicKeyEntry
from agenttrust.signing import encode_public_key, generate_keypair
from agenttrust.storage import LocalObjectStore

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("AGENTTRUST_"):
            monkeypatch.delenv(name)
    yield


@pytest.fixture(autouse=True)
def _restore_root_logging():
    # cli.main() reconfigures the root logger; put it back after each test.
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def keypair():
    return generate_keypair()


@pytest.fixture
def key_set(keypair):
    public, _ = keypair
    other_public, _ = generate_keypair()
    return KeySet([
        PublicKeyEntry(key_id="k1", public_key=encode_public_key(public)),
        PublicKeyEntry(key_id="k2", public_key=encode_public_key(other_public)),
    ])


@pytest.fixture
def local_store(tmp_path):
    return LocalObjectStore(root=str(tmp_path / "objects"), base_prefix="tenant1")
