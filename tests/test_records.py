"""
Tests for the EncryptedData storage shape and structural validation.
"""
import pytest
from pydantic import ValidationError

from credential_vault.exceptions import MalformedRecordError
from credential_vault.vault.crypto import encrypt
from credential_vault.vault.records import (
    AES_GCM,
    CHACHA20_POLY1305,
    EncryptedData,
    validate_record,
)

NONCE_HEX = "00112233445566778899aabb"
CIPHERTEXT_HEX = "ff" * 20


@pytest.fixture
def stored():
    return {"ciphertext": CIPHERTEXT_HEX, "nonce": NONCE_HEX}


class TestStorageShape:
    """Tests for to_storage/from_storage."""

    def test_to_storage_is_hex(self, key):
        data = encrypt(key, b"1234")
        stored = data.to_storage()
        assert set(stored) == {"ciphertext", "nonce", "algorithm"}
        assert stored["nonce"] == data.nonce.hex()
        assert len(stored["nonce"]) == 24
        assert stored["ciphertext"] == data.ciphertext.hex()
        assert stored["algorithm"] == AES_GCM

    def test_from_storage_decodes_hex(self, stored):
        data = EncryptedData.from_storage(stored)
        assert data.nonce == bytes.fromhex(NONCE_HEX)
        assert data.ciphertext == b"\xff" * 20

    def test_legacy_record_defaults_to_aes_gcm(self, stored):
        """Records written without an algorithm tag stay readable."""
        assert EncryptedData.from_storage(stored).algorithm == AES_GCM

    def test_legacy_null_algorithm(self, stored):
        stored["algorithm"] = None
        assert EncryptedData.from_storage(stored).algorithm == AES_GCM

    def test_data_iv_field_names(self):
        """The {data, iv, salt} shape of early vaults is accepted."""
        data = EncryptedData.from_storage(
            {"data": CIPHERTEXT_HEX, "iv": NONCE_HEX, "salt": ""}
        )
        assert data.nonce == bytes.fromhex(NONCE_HEX)
        assert data.algorithm == AES_GCM

    def test_explicit_algorithm(self, stored):
        stored["algorithm"] = CHACHA20_POLY1305
        assert EncryptedData.from_storage(stored).algorithm == CHACHA20_POLY1305

    def test_uppercase_hex_accepted(self, stored):
        stored["nonce"] = NONCE_HEX.upper()
        assert EncryptedData.from_storage(stored).nonce == bytes.fromhex(NONCE_HEX)

    def test_record_is_immutable(self, key):
        data = encrypt(key, b"1234")
        with pytest.raises(ValidationError):
            data.nonce = b"\x00" * 12

    def test_repr_hides_ciphertext(self, stored):
        data = EncryptedData.from_storage(stored)
        assert CIPHERTEXT_HEX not in repr(data)


class TestMalformedRecords:
    """Structural validation failures raise MalformedRecordError."""

    @pytest.mark.parametrize("record", [
        {"ciphertext": CIPHERTEXT_HEX},
        {"nonce": NONCE_HEX},
        {"ciphertext": CIPHERTEXT_HEX, "nonce": ""},
        {"ciphertext": CIPHERTEXT_HEX, "nonce": NONCE_HEX[:-4]},
        {"ciphertext": CIPHERTEXT_HEX, "nonce": NONCE_HEX + "cc"},
        {"ciphertext": CIPHERTEXT_HEX, "nonce": "zz" * 12},
        {"ciphertext": "", "nonce": NONCE_HEX},
        {"ciphertext": "ab" * 15, "nonce": NONCE_HEX},
        {"ciphertext": "abc", "nonce": NONCE_HEX},
        {"ciphertext": CIPHERTEXT_HEX, "nonce": NONCE_HEX, "algorithm": "rot13"},
        {"ciphertext": 42, "nonce": NONCE_HEX},
    ])
    def test_rejected(self, record):
        with pytest.raises(MalformedRecordError):
            EncryptedData.from_storage(record)

    def test_not_a_mapping(self):
        with pytest.raises(MalformedRecordError):
            EncryptedData.from_storage(["ciphertext", "nonce"])

    def test_validate_record_mapping(self, stored):
        assert isinstance(validate_record(stored), EncryptedData)

    def test_validate_record_instance(self, key):
        data = encrypt(key, b"")
        assert validate_record(data) is data

    def test_validate_record_unvalidated_instance(self):
        """Instances that skipped validation are re-checked."""
        bad = EncryptedData.model_construct(
            ciphertext=b"", nonce=b"\x00" * 12, algorithm=AES_GCM,
        )
        with pytest.raises(MalformedRecordError):
            validate_record(bad)

    def test_validate_record_garbage(self):
        with pytest.raises(MalformedRecordError):
            validate_record(None)
