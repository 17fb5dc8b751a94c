"""
Vault Models: bank accounts and the credentials they own.

Only ``Credential.encrypted_value`` is encrypted. Credential notes and all
account metadata are stored in plaintext; whether notes should be encrypted
too is an open question, so they are kept as they always were.
"""
import uuid
from enum import Enum
from typing import Any, Optional
from datetime import datetime, timezone
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import MalformedRecordError
from .vault.records import EncryptedData


KNOWN_BANKS = (
    "State Bank of India (SBI)",
    "HDFC Bank",
    "ICICI Bank",
    "Axis Bank",
    "Yes Bank",
    "Punjab National Bank (PNB)",
    "Bank of Baroda",
    "Canara Bank",
    "Kotak Mahindra Bank",
    "Union Bank of India",
    "Indian Bank",
    "Bank of India",
    "Central Bank of India",
    "Indian Overseas Bank",
    "UCO Bank",
    "Other",
)


class CredentialType(str, Enum):
    UPI_PIN = "upi_pin"
    ATM_PIN = "atm_pin"
    NET_BANKING = "net_banking"
    MOBILE_BANKING = "mobile_banking"
    TRANSACTION_PASSWORD = "transaction_password"
    DEBIT_CARD_PIN = "debit_card_pin"
    CREDIT_CARD_PIN = "credit_card_pin"
    OTHER = "other"

    @property
    def label(self) -> str:
        return _CREDENTIAL_LABELS[self][0]

    @property
    def description(self) -> str:
        return _CREDENTIAL_LABELS[self][1]


_CREDENTIAL_LABELS = {
    CredentialType.UPI_PIN: ("UPI PIN", "PIN for UPI transactions"),
    CredentialType.ATM_PIN: ("ATM PIN", "PIN for ATM withdrawals"),
    CredentialType.NET_BANKING: (
        "Net Banking Password", "Internet banking login password"
    ),
    CredentialType.MOBILE_BANKING: (
        "Mobile Banking PIN", "Mobile app login PIN/password"
    ),
    CredentialType.TRANSACTION_PASSWORD: (
        "Transaction Password", "Password for online transactions"
    ),
    CredentialType.DEBIT_CARD_PIN: (
        "Debit Card PIN", "PIN for debit card transactions"
    ),
    CredentialType.CREDIT_CARD_PIN: (
        "Credit Card PIN", "PIN for credit card transactions"
    ),
    CredentialType.OTHER: ("Other", "Other banking credentials"),
}


class AccountType(str, Enum):
    SAVINGS = "savings"
    CURRENT = "current"
    SALARY = "salary"
    FD = "fd"
    RD = "rd"
    CREDIT_CARD = "credit_card"
    OTHER = "other"


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _StoredModel(BaseModel):
    """Shared storage helpers; on disk the field names are camelCase."""

    model_config = ConfigDict(populate_by_name=True)

    def to_storage(self) -> dict[str, Any]:
        """Return a JSON-safe mapping using the stored field names."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_storage(cls, data: Mapping[str, Any]):
        """Rebuild a model from its stored mapping.

        Raises:
            MalformedRecordError: If the stored data does not validate.
        """
        try:
            return cls.model_validate(dict(data))
        except (TypeError, ValidationError) as err:
            raise MalformedRecordError(
                f"stored {cls.__name__.lower()} is malformed: {err}"
            ) from err

    def touch(self) -> None:
        """Mark the record as modified now."""
        self.updated_at = _utcnow()


class Credential(_StoredModel):
    """A single encrypted banking secret (PIN, password, ...)."""

    id: str = Field(default_factory=_new_id)
    type: CredentialType = CredentialType.OTHER
    label: str
    encrypted_value: EncryptedData = Field(alias="encryptedValue")
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=_utcnow, alias="updatedAt")

    def __repr__(self) -> str:
        return (
            f'<Credential {self.id} type={self.type.value} '
            f'label={self.label!r}>'
        )


class Account(_StoredModel):
    """A bank account and the credentials it owns, in display order."""

    id: str = Field(default_factory=_new_id)
    bank_name: str = Field(alias="bankName")
    account_number: str = Field(default="", alias="accountNumber")
    account_type: AccountType = Field(
        default=AccountType.SAVINGS, alias="accountType"
    )
    holder_name: str = Field(default="", alias="accountHolderName")
    credentials: list[Credential] = Field(default_factory=list)
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=_utcnow, alias="updatedAt")
    is_active: bool = Field(default=True, alias="isActive")

    def __repr__(self) -> str:
        return (
            f'<Account {self.id} bank={self.bank_name!r} '
            f'credentials={len(self.credentials)}>'
        )

    def find_credential(self, credential_id: str) -> Optional[Credential]:
        for credential in self.credentials:
            if credential.id == credential_id:
                return credential
        return None

    def matches(self, query: str) -> bool:
        """Case-insensitive match on names and labels, exact-case on number."""
        lowered = query.lower()
        return (
            lowered in self.bank_name.lower()
            or lowered in self.holder_name.lower()
            or query in self.account_number
            or any(lowered in c.label.lower() for c in self.credentials)
        )
