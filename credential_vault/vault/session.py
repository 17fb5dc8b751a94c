"""
KeySession: the single-slot holder of the active master key.

States::

    Locked   --set_key()/unlock()-->  Unlocked
    Unlocked --lock()------------->   Locked
    Unlocked --set_key()---------->   Unlocked (previous key wiped first)

A KeySession is an explicit object: whoever needs cipher access is handed
the session, so "only while unlocked" is visible at every call site.

Security Note:
    Lock/unlock are expected to be serialized by the caller. A decrypt that
    was already dispatched when ``lock()`` runs may still complete with the
    old key; its result is the caller's to discard.
"""
import asyncio
import logging

from ..exceptions import NoActiveSessionError
from .crypto import (
    DEFAULT_ITERATIONS,
    MasterKey,
    decrypt,
    derive_key,
    encrypt,
)
from .records import DEFAULT_ALGORITHM, EncryptedData

logger = logging.getLogger("credential_vault.session")


class KeySession:
    """Holds at most one :class:`MasterKey` for the lifetime of an unlock."""

    def __init__(self) -> None:
        self._key: MasterKey | None = None

    def __repr__(self) -> str:
        state = "unlocked" if self.is_unlocked else "locked"
        return f"<KeySession [{state}]>"

    @property
    def is_unlocked(self) -> bool:
        return self._key is not None

    @property
    def algorithm(self) -> str | None:
        return self._key.algorithm if self._key is not None else None

    def set_key(self, key: MasterKey) -> None:
        """Replace the held key. The previous key, if any, is wiped first."""
        if not isinstance(key, MasterKey):
            raise TypeError(f"Expected MasterKey, got {type(key).__name__}")
        if key.wiped:
            raise ValueError("Cannot activate a wiped master key")
        if self._key is not None and self._key is not key:
            self._key.wipe()
        self._key = key
        logger.debug("Session unlocked (%s)", key.algorithm)

    def lock(self) -> None:
        """Clear the held key. Safe to call when already locked."""
        key, self._key = self._key, None
        if key is not None:
            key.wipe()
            logger.debug("Session locked")

    async def unlock(
        self,
        password: str,
        salt: bytes | None = None,
        iterations: int = DEFAULT_ITERATIONS,
        algorithm: str = DEFAULT_ALGORITHM,
    ) -> bytes:
        """Derive a key from ``password`` and activate it.

        Returns:
            The salt used (freshly generated when ``salt`` is None).

        Raises:
            DerivationError: If derivation fails; the session state is unchanged.
        """
        key, used_salt = await derive_key(password, salt, iterations, algorithm)
        self.set_key(key)
        return used_salt

    def _active_key(self) -> MasterKey:
        if self._key is None:
            raise NoActiveSessionError("Vault is locked")
        return self._key

    async def encrypt(self, plaintext: bytes | str) -> EncryptedData:
        """Encrypt with the active key.

        ``str`` values are encoded as UTF-8.

        Raises:
            NoActiveSessionError: If the session is locked.
        """
        key = self._active_key()
        if isinstance(plaintext, str):
            plaintext = plaintext.encode("utf-8")
        return await asyncio.to_thread(encrypt, key, plaintext)

    async def decrypt(self, data: EncryptedData) -> bytes:
        """Decrypt with the active key.

        Raises:
            NoActiveSessionError: If the session is locked.
            MalformedRecordError: If the record is structurally invalid.
            AuthenticationError: If verification fails.
        """
        key = self._active_key()
        return await asyncio.to_thread(decrypt, key, data)

    async def decrypt_text(self, data: EncryptedData) -> str:
        """Decrypt and decode a UTF-8 value."""
        return (await self.decrypt(data)).decode("utf-8")
