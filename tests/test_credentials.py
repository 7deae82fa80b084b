"""
Unit tests for encrypted credential storage.
"""

import asyncio
import os
import stat
import tempfile

import pytest
from cryptography.fernet import Fernet

from ymobile_usage.core.credentials import CREDENTIALS_KEY, CredentialStore, load_or_create_key
from ymobile_usage.core.errors import CredentialError
from ymobile_usage.storage.models import Credentials
from ymobile_usage.storage.repository import MemoryKeyValueStore


class TestKeyFile:
    """Test Fernet key creation and reuse."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_creates_key_with_owner_only_mode(self):
        key_path = os.path.join(self.temp_dir, "nested", "credentials.key")
        key = load_or_create_key(key_path)

        assert os.path.exists(key_path)
        assert stat.S_IMODE(os.stat(key_path).st_mode) == 0o600
        Fernet(key)

    def test_reuses_existing_key(self):
        key_path = os.path.join(self.temp_dir, "credentials.key")
        assert load_or_create_key(key_path) == load_or_create_key(key_path)


class TestCredentialStore:
    """Test save/load/delete round trips through the key-value store."""

    def test_save_and_load(self, fernet_key):
        store = MemoryKeyValueStore()
        credentials = CredentialStore(store, fernet_key)
        asyncio.run(credentials.save(Credentials("09012345678", "hunter2")))

        loaded = asyncio.run(credentials.load())
        assert loaded == Credentials("09012345678", "hunter2")

    def test_stored_value_is_encrypted(self, fernet_key):
        store = MemoryKeyValueStore()
        asyncio.run(CredentialStore(store, fernet_key).save(Credentials("09012345678", "hunter2")))

        stored = store.data[CREDENTIALS_KEY]
        assert "hunter2" not in stored
        assert "09012345678" not in stored

    def test_load_missing(self, fernet_key):
        assert asyncio.run(CredentialStore(MemoryKeyValueStore(), fernet_key).load()) is None

    def test_wrong_key(self, fernet_key):
        store = MemoryKeyValueStore()
        asyncio.run(CredentialStore(store, fernet_key).save(Credentials("09012345678", "hunter2")))

        with pytest.raises(CredentialError, match="decrypted"):
            asyncio.run(CredentialStore(store, Fernet.generate_key()).load())

    def test_corrupt_payload(self, fernet_key):
        token = Fernet(fernet_key).encrypt(b'{"identifier": "x"}').decode()
        store = MemoryKeyValueStore({CREDENTIALS_KEY: token})
        with pytest.raises(CredentialError, match="corrupt"):
            asyncio.run(CredentialStore(store, fernet_key).load())

    def test_delete(self, fernet_key):
        store = MemoryKeyValueStore()
        credentials = CredentialStore(store, fernet_key)
        asyncio.run(credentials.save(Credentials("09012345678", "hunter2")))
        assert asyncio.run(credentials.has_credentials())

        asyncio.run(credentials.delete())
        assert not asyncio.run(credentials.has_credentials())
        assert asyncio.run(credentials.load()) is None

    def test_secret_not_logged(self, fernet_key, caplog):
        with caplog.at_level("DEBUG"):
            asyncio.run(CredentialStore(MemoryKeyValueStore(), fernet_key).save(
                Credentials("09012345678", "hunter2")
            ))
        assert "hunter2" not in caplog.text
        assert "090****5678" in caplog.text
