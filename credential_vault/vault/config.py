"""
Vault Configuration: Runtime settings and the persisted settings record.

Runtime settings are read from environment variables:
    VAULT_KDF_ITERATIONS = <int, minimum 100000>
    VAULT_CIPHER_BACKEND = aesgcm | chacha20
    VAULT_MIN_PASSWORD_LENGTH = <int>
    VAULT_STORAGE_PATH = <directory for the JSON stores; unset = in-memory>

The persisted settings record is stored in plaintext (salts are not secret)::

    {"salt": "<32 hex chars>", "derivationIterations": 100000, "isFirstRun": false}

Security Note:
    Never log key material. Only log iteration counts and backend names.
"""
import os
import logging
from pathlib import Path

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .crypto import DEFAULT_ITERATIONS, MIN_ITERATIONS, SALT_SIZE, generate_salt
from .records import AES_GCM, CHACHA20_POLY1305

logger = logging.getLogger("credential_vault.config")

_BACKENDS = {
    "aesgcm": AES_GCM,
    "chacha20": CHACHA20_POLY1305,
}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


class VaultConfig(BaseModel):
    """Validated vault runtime configuration."""

    kdf_iterations: int = Field(default=DEFAULT_ITERATIONS, ge=MIN_ITERATIONS)
    cipher_backend: str = Field(default="aesgcm")
    min_password_length: int = Field(default=8, ge=1)
    storage_path: Path | None = None

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in _BACKENDS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @property
    def algorithm(self) -> str:
        """Algorithm tag matching ``cipher_backend``."""
        return _BACKENDS[self.cipher_backend]

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Returns:
            Populated VaultConfig instance.
        """
        storage_path = os.environ.get("VAULT_STORAGE_PATH") or None
        config = cls(
            kdf_iterations=_env_int("VAULT_KDF_ITERATIONS", DEFAULT_ITERATIONS),
            cipher_backend=os.environ.get("VAULT_CIPHER_BACKEND", "aesgcm"),
            min_password_length=_env_int("VAULT_MIN_PASSWORD_LENGTH", 8),
            storage_path=storage_path,
        )
        logger.debug(
            "Loaded vault config: backend=%s iterations=%d storage=%s",
            config.cipher_backend,
            config.kdf_iterations,
            config.storage_path or "memory",
        )
        return config


class VaultSettings(BaseModel):
    """Persisted vault settings (salt and derivation parameters)."""

    model_config = ConfigDict(populate_by_name=True)

    salt: str
    derivation_iterations: int = Field(
        default=DEFAULT_ITERATIONS,
        ge=MIN_ITERATIONS,
        alias="derivationIterations",
    )
    # a stored record always belongs to a vault that has been set up;
    # early vaults wrote the flag as ``isFirstTime``
    is_first_run: bool = Field(
        default=False,
        validation_alias=AliasChoices("isFirstRun", "isFirstTime"),
        serialization_alias="isFirstRun",
    )

    @field_validator("salt")
    @classmethod
    def validate_salt(cls, v: str) -> str:
        """Salt must be exactly 16 bytes, hex-encoded."""
        if len(v) != SALT_SIZE * 2:
            raise ValueError(
                f"salt must be {SALT_SIZE * 2} hex characters, got {len(v)}"
            )
        try:
            bytes.fromhex(v)
        except ValueError:
            raise ValueError("salt is not valid hex") from None
        return v.lower()

    @property
    def salt_bytes(self) -> bytes:
        return bytes.fromhex(self.salt)

    @classmethod
    def create(
        cls,
        salt: bytes | None = None,
        iterations: int = DEFAULT_ITERATIONS,
    ) -> "VaultSettings":
        """Build settings for a freshly set-up vault."""
        salt = generate_salt() if salt is None else salt
        return cls(
            salt=salt.hex(),
            derivation_iterations=iterations,
            is_first_run=False,
        )

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True)
