"""
Credential Store for ms-graph-devtools.

This module provides a standardized interface for persisting renewable
credentials across process restarts, using one local JSON file per
tenant/client pair. The client secret is never written to disk.
"""

import asyncio
import json
import logging
import os
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

STORAGE_FOLDER_NAME = "ms-graph-devtools"
STORAGE_HOME_ENV_VAR = "MS_GRAPH_DEVTOOLS_HOME"
LEGACY_FILENAME = "tokens.json"

DIRECTORY_MODE = 0o700
FILE_MODE = 0o600


def resolve_directory() -> str:
    """
    Resolve the platform-specific directory holding token files.

    MS_GRAPH_DEVTOOLS_HOME wins on every platform. Otherwise Windows uses
    %LOCALAPPDATA% and everything else uses $XDG_CONFIG_HOME, each with a
    home-directory fallback, suffixed with the product folder.
    """
    override = os.getenv(STORAGE_HOME_ENV_VAR)
    if override:
        return os.path.expanduser(override)

    home_dir = os.path.expanduser("~")
    if sys.platform == "win32":
        base_dir = os.getenv("LOCALAPPDATA") or os.path.join(home_dir, "AppData", "Local")
    else:
        base_dir = os.getenv("XDG_CONFIG_HOME") or os.path.join(home_dir, ".config")
    return os.path.join(base_dir, STORAGE_FOLDER_NAME)


def credential_filename(tenant_id: Optional[str] = None, client_id: Optional[str] = None) -> str:
    """Get the token filename for a tenant/client pair, or the legacy shared name."""
    if tenant_id and client_id:
        return f"tokens.{tenant_id}.{client_id}.json"
    return LEGACY_FILENAME


def _owner_only_opener(path: str, flags: int) -> int:
    return os.open(path, flags, FILE_MODE)


def _expiry_from_storage(value: Any) -> Optional[float]:
    """Read a stored expiry, accepting both epoch milliseconds and seconds."""
    if value is None or value == "":
        return None
    try:
        expiry = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unparseable stored expiry: {value!r}")
        return None
    # Handle milliseconds vs seconds
    if expiry > 1e12:
        expiry = expiry / 1000
    return expiry


@dataclass
class StoredCredentials:
    """Non-secret credential material persisted for one tenant/client pair."""

    refresh_token: str
    access_token: str = ""
    expires_at: Optional[float] = None
    client_id: str = ""
    tenant_id: str = ""

    def __post_init__(self):
        # Stored expiry is whole milliseconds
        if self.expires_at is not None:
            self.expires_at = round(float(self.expires_at), 3)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the on-disk shape (expiry in epoch milliseconds)."""
        data: Dict[str, Any] = {
            "refreshToken": self.refresh_token,
            "accessToken": self.access_token,
            "clientId": self.client_id,
            "tenantId": self.tenant_id,
        }
        if self.expires_at is not None:
            data["expiresAt"] = round(self.expires_at * 1000)
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "StoredCredentials":
        if not isinstance(data, dict):
            raise TypeError(f"Expected a JSON object, got {type(data).__name__}")
        return cls(
            refresh_token=data.get("refreshToken") or "",
            access_token=data.get("accessToken") or "",
            expires_at=_expiry_from_storage(data.get("expiresAt")),
            client_id=data.get("clientId") or "",
            tenant_id=data.get("tenantId") or "",
        )


@dataclass(frozen=True)
class StoredCredentialEntry:
    """A token file discovered in the storage directory."""

    file: str
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None

    @property
    def is_legacy(self) -> bool:
        return not (self.tenant_id and self.client_id)


class CredentialStore(ABC):
    """Abstract base class for credential storage."""

    @abstractmethod
    def resolve_file_path(
        self, tenant_id: Optional[str] = None, client_id: Optional[str] = None
    ) -> str:
        """Get the file path used for a tenant/client pair."""
        pass

    @abstractmethod
    async def load(
        self, tenant_id: Optional[str] = None, client_id: Optional[str] = None
    ) -> Optional[StoredCredentials]:
        """Load stored credentials, or None when nothing usable is stored."""
        pass

    @abstractmethod
    async def save(self, record: StoredCredentials) -> bool:
        """Persist credentials. Never raises."""
        pass

    @abstractmethod
    async def list_credentials(self) -> List[StoredCredentialEntry]:
        """List every stored token file."""
        pass

    @abstractmethod
    async def clear(
        self, tenant_id: Optional[str] = None, client_id: Optional[str] = None
    ) -> None:
        """Delete one tenant/client file, or every token file. Never raises."""
        pass


class LocalDirectoryCredentialStore(CredentialStore):
    """Credential store that uses local JSON files for storage."""

    def __init__(self, base_dir: Optional[str] = None) -> None:
        """
        Initialize the local credential store.

        Args:
            base_dir: Directory for token files. If None, it is resolved on
                     every access with resolve_directory(), so environment
                     overrides set later are honored.
        """
        self._base_dir = base_dir

    @property
    def base_dir(self) -> str:
        return self._base_dir or resolve_directory()

    def resolve_file_path(
        self, tenant_id: Optional[str] = None, client_id: Optional[str] = None
    ) -> str:
        return os.path.join(self.base_dir, credential_filename(tenant_id, client_id))

    async def load(
        self, tenant_id: Optional[str] = None, client_id: Optional[str] = None
    ) -> Optional[StoredCredentials]:
        """Load credentials from the tenant/client JSON file."""
        creds_path = self.resolve_file_path(tenant_id, client_id)

        try:
            async with aiofiles.open(creds_path, "r", encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError:
            logger.debug(f"No credential file found at {creds_path}")
            return None
        except OSError as e:
            logger.error(f"Error reading credentials from {creds_path}: {e}")
            return None

        try:
            record = StoredCredentials.from_dict(json.loads(content))
        except (ValueError, TypeError) as e:
            logger.warning(f"Ignoring malformed credential file {creds_path}: {e}")
            return None

        logger.info(f"Credentials loaded from storage: {creds_path}")
        return record

    async def save(self, record: StoredCredentials) -> bool:
        """Atomically write credentials with owner-only permissions."""
        creds_path = self.resolve_file_path(record.tenant_id, record.client_id)
        tmp_path = f"{creds_path}.tmp"

        try:
            await aiofiles.os.makedirs(
                os.path.dirname(creds_path), mode=DIRECTORY_MODE, exist_ok=True
            )
            if await aiofiles.os.path.exists(tmp_path):
                await aiofiles.os.remove(tmp_path)
            async with aiofiles.open(
                tmp_path, "w", encoding="utf-8", opener=_owner_only_opener
            ) as f:
                await f.write(json.dumps(record.to_dict(), indent=2))
            await aiofiles.os.replace(tmp_path, creds_path)
        except OSError as e:
            logger.error(f"Failed to save credentials to {creds_path}: {e}")
            return False

        logger.info(f"Credentials saved to {creds_path}")
        return True

    async def list_credentials(self) -> List[StoredCredentialEntry]:
        """List all token files, resolving tenant/client from the filename."""
        base_dir = self.base_dir
        try:
            filenames = await aiofiles.os.listdir(base_dir)
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.error(f"Error listing credential files in {base_dir}: {e}")
            return []

        entries = []
        for filename in sorted(filenames):
            if not (filename.startswith("tokens") and filename.endswith(".json")):
                continue
            parts = filename.split(".")
            if len(parts) == 4 and parts[0] == "tokens":
                entries.append(
                    StoredCredentialEntry(file=filename, tenant_id=parts[1], client_id=parts[2])
                )
            else:
                entries.append(StoredCredentialEntry(file=filename))

        logger.debug(f"Found {len(entries)} stored credential files")
        return entries

    async def clear(
        self, tenant_id: Optional[str] = None, client_id: Optional[str] = None
    ) -> None:
        """Delete credential files."""
        if tenant_id and client_id:
            if await self._remove(self.resolve_file_path(tenant_id, client_id)):
                logger.info(f"Cleared credentials for tenant={tenant_id}, client={client_id}")
            return

        base_dir = self.base_dir
        entries = await self.list_credentials()
        removed = await asyncio.gather(
            *(self._remove(os.path.join(base_dir, entry.file)) for entry in entries)
        )
        logger.info(f"Cleared all stored credentials ({sum(removed)} files)")

    async def _remove(self, path: str) -> bool:
        try:
            await aiofiles.os.remove(path)
            return True
        except FileNotFoundError:
            logger.debug(f"Credential file already absent: {path}")
            return False
        except OSError as e:
            logger.error(f"Failed to clear credentials at {path}: {e}")
            return False


# Global credential store instance
_credential_store: Optional[CredentialStore] = None


def get_credential_store() -> CredentialStore:
    """Get the global credential store instance."""
    global _credential_store

    if _credential_store is None:
        _credential_store = LocalDirectoryCredentialStore()
        logger.debug(f"Initialized credential store: {type(_credential_store).__name__}")

    return _credential_store


def set_credential_store(store: Optional[CredentialStore]) -> None:
    """Set the global credential store instance (None restores the default)."""
    global _credential_store
    _credential_store = store
    logger.info(f"Set credential store: {type(store).__name__}")
