"""
Encrypted Records: the storage shape of a single encrypted field value.

Storage format (hex-encoded, JSON-safe)::

    {"ciphertext": "<hex>", "nonce": "<hex>", "algorithm": "aes-256-gcm"}

Records written before the algorithm tag existed carry only ``ciphertext``
and ``nonce`` (or ``data`` and ``iv``) and are read as AES-256-GCM.

Security Note:
    Records are validated structurally before they ever reach the AEAD
    primitive. A malformed record is a data-integrity error and is never
    repaired.
"""
from typing import Any
from collections.abc import Mapping

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)

from ..exceptions import MalformedRecordError

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16  # AEAD authentication tag appended to the ciphertext

AES_GCM = "aes-256-gcm"
CHACHA20_POLY1305 = "chacha20-poly1305"
SUPPORTED_ALGORITHMS = frozenset({AES_GCM, CHACHA20_POLY1305})
DEFAULT_ALGORITHM = AES_GCM


def _shape_error(ciphertext: Any, nonce: Any, algorithm: Any) -> str | None:
    """Return a description of the first structural problem, or None."""
    if not isinstance(nonce, bytes) or not nonce:
        return "nonce is missing or empty"
    if len(nonce) != NONCE_SIZE:
        return f"nonce must be {NONCE_SIZE} bytes, got {len(nonce)}"
    if not isinstance(ciphertext, bytes) or not ciphertext:
        return "ciphertext is missing or empty"
    if len(ciphertext) < TAG_SIZE:
        return (
            f"ciphertext too short: {len(ciphertext)} bytes "
            f"(minimum {TAG_SIZE})"
        )
    if algorithm not in SUPPORTED_ALGORITHMS:
        return f"unsupported algorithm: {algorithm!r}"
    return None


class EncryptedData(BaseModel):
    """Ciphertext (with tag) plus the nonce it was sealed under.

    Immutable once created; produced by ``crypto.encrypt`` and consumed by
    ``crypto.decrypt``.
    """

    model_config = ConfigDict(frozen=True)

    ciphertext: bytes = Field(
        validation_alias=AliasChoices("ciphertext", "data")
    )
    nonce: bytes = Field(validation_alias=AliasChoices("nonce", "iv"))
    algorithm: str = DEFAULT_ALGORITHM

    @field_validator("ciphertext", "nonce", mode="before")
    @classmethod
    def decode_hex(cls, v: Any) -> Any:
        """Accept hex strings as stored on disk."""
        if isinstance(v, str):
            try:
                return bytes.fromhex(v)
            except ValueError:
                raise ValueError("value is not valid hex") from None
        return v

    @field_validator("algorithm", mode="before")
    @classmethod
    def default_algorithm(cls, v: Any) -> Any:
        """Legacy records may store an explicit null algorithm."""
        return DEFAULT_ALGORITHM if v is None else v

    @model_validator(mode="after")
    def validate_shape(self) -> "EncryptedData":
        error = _shape_error(self.ciphertext, self.nonce, self.algorithm)
        if error:
            raise ValueError(error)
        return self

    @field_serializer("ciphertext", "nonce", when_used="json")
    def encode_hex(self, v: bytes) -> str:
        return v.hex()

    def __repr__(self) -> str:
        return (
            f"EncryptedData(algorithm={self.algorithm!r}, "
            f"ciphertext=<{len(self.ciphertext)} bytes>)"
        )

    def to_storage(self) -> dict[str, str]:
        """Return the hex-encoded, JSON-safe storage mapping."""
        return self.model_dump(mode="json")

    @classmethod
    def from_storage(cls, data: Mapping[str, Any]) -> "EncryptedData":
        """Build a record from its storage mapping.

        Raises:
            MalformedRecordError: If any field is missing, not hex, empty
                or of the wrong size.
        """
        if not isinstance(data, Mapping):
            raise MalformedRecordError(
                f"encrypted record must be a mapping, got {type(data).__name__}"
            )
        try:
            return cls.model_validate(dict(data))
        except ValidationError as err:
            details = "; ".join(
                f"{'.'.join(str(p) for p in e['loc']) or 'record'}: {e['msg']}"
                for e in err.errors()
            )
            raise MalformedRecordError(
                f"malformed encrypted record ({details})"
            ) from err


def validate_record(value: Any) -> EncryptedData:
    """Validate anything that claims to be an encrypted record.

    Accepts an :class:`EncryptedData` (re-checked, since instances built
    with ``model_construct`` skip validation) or a storage mapping.

    Raises:
        MalformedRecordError: If the record is structurally invalid.
    """
    if isinstance(value, EncryptedData):
        error = _shape_error(
            getattr(value, "ciphertext", None),
            getattr(value, "nonce", None),
            getattr(value, "algorithm", None),
        )
        if error:
            raise MalformedRecordError(f"malformed encrypted record ({error})")
        return value
    return EncryptedData.from_storage(value)
