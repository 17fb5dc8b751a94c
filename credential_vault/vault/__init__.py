"""Vault Core: Key derivation, authenticated encryption and the key session.

Security Note (Threat Model):
    The master key and decrypted values live in process memory while the
    vault is unlocked. A memory dump of the process could expose them.
    This is an accepted limitation; protecting against a compromised
    runtime is out of scope.
"""

from .records import EncryptedData, validate_record
from .crypto import MasterKey, derive_key, encrypt, decrypt, generate_salt
from .session import KeySession
from .config import VaultConfig, VaultSettings

__all__ = [
    "EncryptedData",
    "validate_record",
    "MasterKey",
    "derive_key",
    "encrypt",
    "decrypt",
    "generate_salt",
    "KeySession",
    "VaultConfig",
    "VaultSettings",
]
