"""
Vault Exceptions.

Every error raised by the vault derives from :class:`VaultError`, so callers
can catch the whole family at the UI boundary and decide whether to prompt
for the password again or give up on a damaged vault.
"""


class VaultError(Exception):
    """Base exception for vault operation errors."""


class DerivationError(VaultError):
    """Key derivation failed: bad input or the KDF primitive is unavailable."""

    user_message = "could not set up vault"


class NoActiveSessionError(VaultError):
    """A cipher operation was attempted while the vault is locked."""


class AuthenticationError(VaultError):
    """AEAD verification failed.

    Wrong password, corrupted ciphertext and tampering all produce the same
    error and message.
    """

    user_message = "incorrect password or corrupted data"

    def __init__(self, message: str = user_message):
        super().__init__(message)


class MalformedRecordError(VaultError, ValueError):
    """A stored encrypted record failed structural validation."""


class VaultNotInitializedError(VaultError):
    """No vault settings exist yet; ``setup()`` must run first."""


class VaultAlreadyInitializedError(VaultError):
    """``setup()`` was called on a vault that already has a master password."""


class WeakPasswordError(VaultError, ValueError):
    """The proposed master password does not meet the minimum length."""


class AccountNotFoundError(VaultError, LookupError):
    """Bank account not found."""


class CredentialNotFoundError(VaultError, LookupError):
    """Credential not found in the given bank account."""
