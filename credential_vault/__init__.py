"""Credential Vault.

Client-side encrypted storage of banking credentials. Each credential value
is sealed with AES-256-GCM under a key derived from the master password.
"""
import logging

from .version import __version__
from .exceptions import (
    VaultError,
    DerivationError,
    NoActiveSessionError,
    AuthenticationError,
    MalformedRecordError,
    VaultNotInitializedError,
    VaultAlreadyInitializedError,
    WeakPasswordError,
    AccountNotFoundError,
    CredentialNotFoundError,
)
from .models import Account, AccountType, Credential, CredentialType, KNOWN_BANKS
from .manager import VaultManager
from .vault import EncryptedData, KeySession, VaultConfig, VaultSettings

logging.getLogger("credential_vault").addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    "VaultManager",
    "KeySession",
    "EncryptedData",
    "VaultConfig",
    "VaultSettings",
    "Account",
    "AccountType",
    "Credential",
    "CredentialType",
    "KNOWN_BANKS",
    "VaultError",
    "DerivationError",
    "NoActiveSessionError",
    "AuthenticationError",
    "MalformedRecordError",
    "VaultNotInitializedError",
    "VaultAlreadyInitializedError",
    "WeakPasswordError",
    "AccountNotFoundError",
    "CredentialNotFoundError",
]
