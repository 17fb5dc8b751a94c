"""
Vault Crypto Core: Key derivation and authenticated encryption.

- Key derivation: PBKDF2-HMAC-SHA256(password, salt 16B, >=100k iterations) → 32B
- Field encryption: AES-256-GCM (or ChaCha20-Poly1305) with a random 96-bit
  nonce per call, no associated data.

Security Note:
    Never log passwords, key material, plaintext or ciphertext values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import hmac
import asyncio
import logging

from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from ..exceptions import (
    AuthenticationError,
    DerivationError,
    NoActiveSessionError,
)
from .records import (
    AES_GCM,
    CHACHA20_POLY1305,
    DEFAULT_ALGORITHM,
    NONCE_SIZE,
    SUPPORTED_ALGORITHMS,
    EncryptedData,
    validate_record,
)

logger = logging.getLogger("credential_vault.crypto")

SALT_SIZE = 16  # 128-bit salt
KEY_LENGTH = 32  # AES-256
MIN_ITERATIONS = 100_000
DEFAULT_ITERATIONS = MIN_ITERATIONS

_CIPHERS = {
    AES_GCM: AESGCM,
    CHACHA20_POLY1305: ChaCha20Poly1305,
}


class MasterKey:
    """Symmetric key derived from the master password.

    The material lives in a mutable buffer so :meth:`wipe` can zero it.
    A MasterKey cannot be pickled and never shows its material in ``repr``.
    """

    __slots__ = ("_material", "_algorithm")

    def __init__(self, material: bytes, algorithm: str = DEFAULT_ALGORITHM):
        if len(material) != KEY_LENGTH:
            raise ValueError(
                f"key material must be exactly {KEY_LENGTH} bytes, "
                f"got {len(material)}"
            )
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported cipher algorithm: {algorithm}")
        self._material = bytearray(material)
        self._algorithm = algorithm

    @property
    def algorithm(self) -> str:
        return self._algorithm

    @property
    def wiped(self) -> bool:
        return not self._material

    def material(self) -> bytes:
        """Return a copy of the raw key bytes for the cipher primitive.

        Raises:
            NoActiveSessionError: If the key has already been wiped.
        """
        if self.wiped:
            raise NoActiveSessionError("Master key has been cleared")
        return bytes(self._material)

    def wipe(self) -> None:
        """Overwrite the key material with zeros and drop it."""
        for i in range(len(self._material)):
            self._material[i] = 0
        self._material = bytearray()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MasterKey):
            return NotImplemented
        return (
            self._algorithm == other._algorithm
            and hmac.compare_digest(self._material, other._material)
        )

    __hash__ = None  # mutable: wiping changes equality

    def __repr__(self) -> str:
        state = "wiped" if self.wiped else "active"
        return f"<MasterKey {self._algorithm} [{state}]>"

    def __reduce__(self):
        raise TypeError("MasterKey must never be serialized")


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def generate_salt() -> bytes:
    """Return 16 cryptographically random bytes for a new vault."""
    return os.urandom(SALT_SIZE)


def _pbkdf2(password: str, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


def derive_key_sync(
    password: str,
    salt: bytes | None = None,
    iterations: int = DEFAULT_ITERATIONS,
    algorithm: str = DEFAULT_ALGORITHM,
) -> tuple[MasterKey, bytes]:
    """Blocking variant of :func:`derive_key`."""
    if not isinstance(password, str) or not password:
        raise DerivationError("Master password cannot be empty")
    if salt is None:
        salt = generate_salt()
    if not isinstance(salt, (bytes, bytearray)) or len(salt) != SALT_SIZE:
        raise DerivationError(f"Salt must be exactly {SALT_SIZE} bytes")
    if iterations < MIN_ITERATIONS:
        raise DerivationError(
            f"Iteration count {iterations} is below the minimum "
            f"of {MIN_ITERATIONS}"
        )
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise DerivationError(f"Unsupported cipher algorithm: {algorithm}")
    try:
        material = _pbkdf2(password, bytes(salt), iterations)
    except UnsupportedAlgorithm as err:
        raise DerivationError(
            "PBKDF2-HMAC-SHA256 is not available in this environment"
        ) from err
    logger.debug(
        "Derived %s key (iterations=%d)", algorithm, iterations,
    )
    return MasterKey(material, algorithm), bytes(salt)


async def derive_key(
    password: str,
    salt: bytes | None = None,
    iterations: int = DEFAULT_ITERATIONS,
    algorithm: str = DEFAULT_ALGORITHM,
) -> tuple[MasterKey, bytes]:
    """Derive a 32-byte master key from a password using PBKDF2-HMAC-SHA256.

    The KDF is deliberately slow, so it runs in a worker thread and the
    event loop stays responsive.

    Args:
        password: The master password (must not be empty).
        salt: 16-byte salt; a fresh random salt is generated when omitted.
        iterations: PBKDF2 iteration count (minimum 100,000).
        algorithm: Cipher the key will be used with for new encryptions.

    Returns:
        Tuple of (MasterKey, salt). The salt must be persisted to unlock later.

    Raises:
        DerivationError: If the input is invalid or the primitive is unavailable.
    """
    return await asyncio.to_thread(
        derive_key_sync, password, salt, iterations, algorithm,
    )


# ---------------------------------------------------------------------------
# Authenticated encryption
# ---------------------------------------------------------------------------

def encrypt(key: MasterKey, plaintext: bytes) -> EncryptedData:
    """Encrypt plaintext under ``key`` with a fresh random nonce.

    Args:
        key: Active master key.
        plaintext: Data to encrypt (may be empty).

    Returns:
        EncryptedData holding ciphertext+tag and the nonce.
    """
    cipher = _CIPHERS[key.algorithm](key.material())
    nonce = os.urandom(NONCE_SIZE)
    ct = cipher.encrypt(nonce, bytes(plaintext), None)
    return EncryptedData(ciphertext=ct, nonce=nonce, algorithm=key.algorithm)


def decrypt(key: MasterKey, data: EncryptedData) -> bytes:
    """Verify and decrypt an encrypted record.

    The record is validated before it reaches the cipher. Verification
    failures are reported uniformly whatever their cause.

    Raises:
        MalformedRecordError: If the record is structurally invalid.
        AuthenticationError: If the tag does not verify (wrong key or tampering).
    """
    record = validate_record(data)
    cipher = _CIPHERS[record.algorithm](key.material())
    try:
        return cipher.decrypt(record.nonce, record.ciphertext, None)
    except InvalidTag:
        logger.warning("Decryption failed: authentication tag mismatch")
        raise AuthenticationError() from None
