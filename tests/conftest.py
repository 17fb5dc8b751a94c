import os

import pytest

from credential_vault.manager import VaultManager
from credential_vault.storage import MemoryRepository, MemorySettingsStore
from credential_vault.vault.crypto import MasterKey, derive_key_sync
from credential_vault.vault.session import KeySession


@pytest.fixture
def key():
    """A random AES-256-GCM key (no KDF cost)."""
    return MasterKey(os.urandom(32))


@pytest.fixture
def other_key():
    return MasterKey(os.urandom(32))


@pytest.fixture(scope="session")
def salt():
    return bytes(range(16))


@pytest.fixture
def derived_key(salt):
    """Key derived from 'correct-password' with the fixed salt."""
    key, _ = derive_key_sync("correct-password", salt)
    return key


@pytest.fixture
def session(key):
    """An unlocked KeySession."""
    s = KeySession()
    s.set_key(key)
    return s


@pytest.fixture
def repository():
    return MemoryRepository()


@pytest.fixture
def settings_store():
    return MemorySettingsStore()


@pytest.fixture
def manager(repository, settings_store):
    """A VaultManager over in-memory stores."""
    return VaultManager(repository=repository, settings_store=settings_store)
