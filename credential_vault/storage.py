"""
Vault Storage: durable maps for accounts and the settings record.

The vault core treats storage as an opaque key-value map:

- ``VaultRepository``: account id → Account (``put``/``get``/``delete``/``list``)
- ``SettingsStore``: single slot holding ``VaultSettings``

Both stores keep serialized documents, never live objects, so a caller
mutating a returned Account does not change what is stored until it is
``put`` back. File-backed stores write a single orjson document atomically
(temp file + rename) with owner-only permissions.

Security Note:
    Stores only ever see EncryptedData for credential values. Never log
    record contents; only ids and counts.
"""
import os
import asyncio
import logging
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Union

import orjson

from .exceptions import MalformedRecordError
from .models import Account
from .vault.config import VaultSettings

logger = logging.getLogger("credential_vault.storage")

ACCOUNTS_FILE = "bank_accounts.json"
SETTINGS_FILE = "settings.json"


class VaultRepository(ABC):
    """Async key-value storage of Account aggregates."""

    @abstractmethod
    async def put(self, key: str, value: Account) -> None:
        ...

    @abstractmethod
    async def get(self, key: str) -> Optional[Account]:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def list(self) -> list[Account]:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...


class SettingsStore(ABC):
    """Async single-slot storage of the vault settings record."""

    @abstractmethod
    async def load(self) -> Optional[VaultSettings]:
        ...

    @abstractmethod
    async def save(self, settings: VaultSettings) -> None:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...


def _load_settings(raw: Any) -> VaultSettings:
    try:
        return VaultSettings.model_validate(raw)
    except (TypeError, ValueError) as err:
        raise MalformedRecordError(
            f"stored vault settings are malformed: {err}"
        ) from err


# ---------------------------------------------------------------------------
# In-memory stores
# ---------------------------------------------------------------------------

class MemoryRepository(VaultRepository):
    """Process-local repository; contents are lost on exit."""

    def __init__(self) -> None:
        self._data: dict[str, dict] = {}

    async def put(self, key: str, value: Account) -> None:
        self._data[key] = value.to_storage()

    async def get(self, key: str) -> Optional[Account]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return Account.from_storage(raw)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list(self) -> list[Account]:
        return [Account.from_storage(raw) for raw in self._data.values()]

    async def clear(self) -> None:
        self._data.clear()


class MemorySettingsStore(SettingsStore):
    def __init__(self) -> None:
        self._data: Optional[dict] = None

    async def load(self) -> Optional[VaultSettings]:
        if self._data is None:
            return None
        return _load_settings(self._data)

    async def save(self, settings: VaultSettings) -> None:
        self._data = settings.to_storage()

    async def clear(self) -> None:
        self._data = None


# ---------------------------------------------------------------------------
# JSON file stores
# ---------------------------------------------------------------------------

def _read_document(path: Path) -> Any:
    if not path.exists():
        return None
    raw = path.read_bytes()
    if not raw:
        return None
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as err:
        raise MalformedRecordError(f"{path.name} is not valid JSON") from err


def _write_document(path: Path, document: Any) -> None:
    """Write ``document`` to ``path`` atomically with mode 0600."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(orjson.dumps(document, option=orjson.OPT_INDENT_2))
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, path)
    except Exception:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


class FileRepository(VaultRepository):
    """Accounts persisted as one JSON document ``{id: account}``."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def _read(self) -> dict[str, Any]:
        document = await asyncio.to_thread(_read_document, self.path)
        if document is None:
            return {}
        if not isinstance(document, dict):
            raise MalformedRecordError(
                f"{self.path.name} must hold a JSON object"
            )
        return document

    async def put(self, key: str, value: Account) -> None:
        async with self._lock:
            document = await self._read()
            document[key] = value.to_storage()
            await asyncio.to_thread(_write_document, self.path, document)
        logger.debug("Stored account id=%s", key)

    async def get(self, key: str) -> Optional[Account]:
        raw = (await self._read()).get(key)
        if raw is None:
            return None
        return Account.from_storage(raw)

    async def delete(self, key: str) -> None:
        async with self._lock:
            document = await self._read()
            if document.pop(key, None) is not None:
                await asyncio.to_thread(_write_document, self.path, document)
                logger.debug("Deleted account id=%s", key)

    async def list(self) -> list[Account]:
        document = await self._read()
        return [Account.from_storage(raw) for raw in document.values()]

    async def clear(self) -> None:
        async with self._lock:
            await asyncio.to_thread(_write_document, self.path, {})


class FileSettingsStore(SettingsStore):
    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def load(self) -> Optional[VaultSettings]:
        document = await asyncio.to_thread(_read_document, self.path)
        if document is None:
            return None
        return _load_settings(document)

    async def save(self, settings: VaultSettings) -> None:
        async with self._lock:
            await asyncio.to_thread(
                _write_document, self.path, settings.to_storage(),
            )

    async def clear(self) -> None:
        async with self._lock:
            if self.path.exists():
                await asyncio.to_thread(self.path.unlink)


def open_stores(
    storage_path: Union[str, Path, None] = None,
) -> tuple[VaultRepository, SettingsStore]:
    """Return (repository, settings store) for a directory, or in-memory."""
    if storage_path is None:
        return MemoryRepository(), MemorySettingsStore()
    base = Path(storage_path)
    return (
        FileRepository(base / ACCOUNTS_FILE),
        FileSettingsStore(base / SETTINGS_FILE),
    )
