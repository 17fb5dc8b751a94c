"""
VaultManager: Setup, unlock/lock and encrypted credential management.

Provides the public API of the credential vault:
- ``setup(password)`` / ``unlock(password)`` / ``lock()``: key lifecycle
- ``add_account`` / ``update_account`` / ``remove_account`` / ``list_accounts``
- ``add_credential`` / ``update_credential`` / ``remove_credential``
- ``reveal_credential``: decrypt a single credential value
- ``search`` / ``filter_accounts`` / ``stats``: read-only queries
- ``export_snapshot``: decrypted view for a downstream document renderer

Security Note:
    Never log plaintext, ciphertext or passwords. Only log account and
    credential ids and operations. Decrypted values exist in process
    memory during use (see threat model in ``vault/__init__.py``).
"""
import logging
from typing import Any, Optional
from collections import Counter

from .exceptions import (
    AccountNotFoundError,
    CredentialNotFoundError,
    NoActiveSessionError,
    VaultAlreadyInitializedError,
    VaultNotInitializedError,
    WeakPasswordError,
)
from .models import Account, AccountType, Credential, CredentialType
from .storage import SettingsStore, VaultRepository, open_stores
from .vault.config import VaultConfig, VaultSettings
from .vault.crypto import derive_key, generate_salt
from .vault.session import KeySession

logger = logging.getLogger("credential_vault.manager")

_UNSET: Any = object()


class VaultManager:
    """Encrypted credential vault bound to one key session.

    Every credential value is encrypted individually with the session key.
    Account metadata and credential notes are stored in plaintext.
    Operations that touch a credential value require an unlocked session
    and raise ``NoActiveSessionError`` otherwise.
    """

    def __init__(
        self,
        repository: Optional[VaultRepository] = None,
        settings_store: Optional[SettingsStore] = None,
        config: Optional[VaultConfig] = None,
        session: Optional[KeySession] = None,
    ):
        self._config = config or VaultConfig()
        if repository is None or settings_store is None:
            default_repo, default_settings = open_stores(
                self._config.storage_path
            )
            repository = repository or default_repo
            settings_store = settings_store or default_settings
        self._repo = repository
        self._settings = settings_store
        self._session = session or KeySession()

    @classmethod
    def from_env(cls) -> "VaultManager":
        """Build a manager from ``VaultConfig.from_env()``."""
        return cls(config=VaultConfig.from_env())

    @property
    def session(self) -> KeySession:
        return self._session

    @property
    def config(self) -> VaultConfig:
        return self._config

    @property
    def is_unlocked(self) -> bool:
        return self._session.is_unlocked

    # ------------------------------------------------------------------
    # Key lifecycle
    # ------------------------------------------------------------------

    async def is_first_run(self) -> bool:
        settings = await self._settings.load()
        return settings is None or settings.is_first_run

    async def setup(self, password: str) -> VaultSettings:
        """Set the master password of a new vault and unlock it.

        Args:
            password: New master password.

        Returns:
            The persisted settings record.

        Raises:
            WeakPasswordError: If the password is too short.
            VaultAlreadyInitializedError: If a master password is already set.
            DerivationError: If key derivation fails.
        """
        if len(password or "") < self._config.min_password_length:
            raise WeakPasswordError(
                f"Password must be at least "
                f"{self._config.min_password_length} characters long"
            )
        # an existing salt is never replaced: every stored credential
        # depends on it
        if await self._settings.load() is not None:
            raise VaultAlreadyInitializedError(
                "Vault already has a master password"
            )

        key, salt = await derive_key(
            password,
            generate_salt(),
            self._config.kdf_iterations,
            self._config.algorithm,
        )
        settings = VaultSettings.create(salt, self._config.kdf_iterations)
        try:
            await self._settings.save(settings)
        except Exception:
            key.wipe()
            raise
        self._session.set_key(key)
        logger.info(
            "Vault set up (iterations=%d)", settings.derivation_iterations,
        )
        return settings

    async def unlock(self, password: str) -> None:
        """Derive the key from the stored salt and activate it.

        The password is not checked here: a wrong password yields a key
        that fails authentication on the first decrypt.

        Raises:
            VaultNotInitializedError: If the vault has never been set up.
            DerivationError: If key derivation fails.
        """
        settings = await self._settings.load()
        if settings is None:
            raise VaultNotInitializedError("No vault found")
        await self._session.unlock(
            password,
            settings.salt_bytes,
            settings.derivation_iterations,
            self._config.algorithm,
        )
        logger.info("Vault unlocked")

    def lock(self) -> None:
        self._session.lock()
        logger.info("Vault locked")

    async def reset(self) -> None:
        """Erase every account and the settings record, then lock."""
        self.lock()
        await self._repo.clear()
        await self._settings.clear()
        logger.info("Vault data cleared")

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def add_account(
        self,
        bank_name: str,
        account_number: str = "",
        account_type: AccountType = AccountType.SAVINGS,
        holder_name: str = "",
        notes: Optional[str] = None,
        is_active: bool = True,
    ) -> Account:
        account = Account(
            bank_name=bank_name,
            account_number=account_number,
            account_type=account_type,
            holder_name=holder_name,
            notes=notes,
            is_active=is_active,
        )
        await self._repo.put(account.id, account)
        logger.debug("Vault add account: id=%s", account.id)
        return account

    async def get_account(self, account_id: str) -> Account:
        account = await self._repo.get(account_id)
        if account is None:
            raise AccountNotFoundError(f"Bank account {account_id} not found")
        return account

    async def update_account(self, account: Account) -> Account:
        """Persist changes to an existing account's metadata."""
        await self.get_account(account.id)
        account.touch()
        await self._repo.put(account.id, account)
        logger.debug("Vault update account: id=%s", account.id)
        return account

    async def remove_account(self, account_id: str) -> None:
        await self.get_account(account_id)
        await self._repo.delete(account_id)
        logger.debug("Vault remove account: id=%s", account_id)

    async def list_accounts(self) -> list[Account]:
        """All accounts, most recently updated first."""
        accounts = await self._repo.list()
        return sorted(accounts, key=lambda a: a.updated_at, reverse=True)

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    async def _locate(
        self, account_id: str, credential_id: str,
    ) -> tuple[Account, Credential]:
        account = await self.get_account(account_id)
        credential = account.find_credential(credential_id)
        if credential is None:
            raise CredentialNotFoundError(
                f"Credential {credential_id} not found in account {account_id}"
            )
        return account, credential

    async def add_credential(
        self,
        account_id: str,
        type: CredentialType,
        label: str,
        value: str,
        notes: Optional[str] = None,
    ) -> Credential:
        """Encrypt ``value`` and append it to the account's credentials.

        Raises:
            NoActiveSessionError: If the vault is locked.
            AccountNotFoundError: If the account does not exist.
        """
        account = await self.get_account(account_id)
        credential = Credential(
            type=CredentialType(type),
            label=label,
            encrypted_value=await self._session.encrypt(value),
            notes=notes,
        )
        account.credentials.append(credential)
        account.touch()
        await self._repo.put(account.id, account)
        logger.debug(
            "Vault add credential: account=%s credential=%s",
            account.id, credential.id,
        )
        return credential

    async def update_credential(
        self,
        account_id: str,
        credential_id: str,
        *,
        type: Optional[CredentialType] = None,
        label: Optional[str] = None,
        value: Optional[str] = None,
        notes: Optional[str] = _UNSET,
    ) -> Credential:
        """Update a credential in place; a new ``value`` is re-encrypted.

        Raises:
            NoActiveSessionError: If ``value`` is given while locked.
        """
        account, credential = await self._locate(account_id, credential_id)
        if value is not None:
            credential.encrypted_value = await self._session.encrypt(value)
        if type is not None:
            credential.type = CredentialType(type)
        if label is not None:
            credential.label = label
        if notes is not _UNSET:
            credential.notes = notes
        credential.touch()
        account.touch()
        await self._repo.put(account.id, account)
        logger.debug(
            "Vault update credential: account=%s credential=%s",
            account.id, credential.id,
        )
        return credential

    async def remove_credential(
        self, account_id: str, credential_id: str,
    ) -> None:
        account, credential = await self._locate(account_id, credential_id)
        account.credentials = [
            c for c in account.credentials if c.id != credential.id
        ]
        account.touch()
        await self._repo.put(account.id, account)
        logger.debug(
            "Vault remove credential: account=%s credential=%s",
            account.id, credential_id,
        )

    async def reveal_credential(
        self, account_id: str, credential_id: str,
    ) -> str:
        """Decrypt and return a credential value.

        Raises:
            NoActiveSessionError: If the vault is locked.
            AuthenticationError: Wrong password or corrupted data.
            MalformedRecordError: If the stored record is malformed.
        """
        _, credential = await self._locate(account_id, credential_id)
        return await self._session.decrypt_text(credential.encrypted_value)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def search(self, query: str) -> list[Account]:
        accounts = await self.list_accounts()
        if not query.strip():
            return accounts
        return [a for a in accounts if a.matches(query)]

    async def accounts_by_bank(self, bank_name: str) -> list[Account]:
        return [
            a for a in await self.list_accounts() if a.bank_name == bank_name
        ]

    async def filter_accounts(
        self, bank: Optional[str] = None, query: Optional[str] = None,
    ) -> list[Account]:
        """Bank filter (``None`` or ``"all"`` disables it) then text search."""
        accounts = await self.list_accounts()
        if bank and bank != "all":
            accounts = [a for a in accounts if a.bank_name == bank]
        if query and query.strip():
            accounts = [a for a in accounts if a.matches(query)]
        return accounts

    async def total_credentials(self) -> int:
        return sum(len(a.credentials) for a in await self._repo.list())

    async def stats(self) -> dict[str, Any]:
        accounts = await self._repo.list()
        banks = Counter(a.bank_name for a in accounts)
        types = Counter(
            c.type.value for a in accounts for c in a.credentials
        )
        return {
            "total_accounts": len(accounts),
            "total_credentials": sum(types.values()),
            "bank_distribution": dict(banks),
            "credential_type_distribution": dict(types),
        }

    async def export_snapshot(self) -> list[dict[str, Any]]:
        """Decrypt every credential for a document renderer.

        Raises:
            NoActiveSessionError: If the vault is locked.
            AuthenticationError: If any credential fails to decrypt.
        """
        if not self.is_unlocked:
            raise NoActiveSessionError("Vault is locked")
        snapshot = []
        for account in await self.list_accounts():
            credentials = []
            for credential in account.credentials:
                credentials.append({
                    "type": credential.type.value,
                    "type_label": credential.type.label,
                    "label": credential.label,
                    "value": await self._session.decrypt_text(
                        credential.encrypted_value
                    ),
                    "notes": credential.notes,
                })
            snapshot.append({
                "bank_name": account.bank_name,
                "account_number": account.account_number,
                "account_type": account.account_type.value,
                "holder_name": account.holder_name,
                "is_active": account.is_active,
                "notes": account.notes,
                "credentials": credentials,
            })
        logger.info("Vault export snapshot: %d account(s)", len(snapshot))
        return snapshot
