"""
Authentication package for ms-graph-devtools.

This package provides:
- Token lifecycle management with refresh and single-retry 401 recovery
- Deduplication of concurrent acquisition, refresh and recovery
- Per tenant/client credential persistence behind a store abstraction
- Interactive authorization-code acquisition through a caller-supplied provider
"""

from .scopes import DEFAULT_SCOPES, get_scopes, format_scopes
from .credential_store import (
    CredentialStore,
    LocalDirectoryCredentialStore,
    StoredCredentials,
    StoredCredentialEntry,
    get_credential_store,
    set_credential_store,
    resolve_directory,
)
from .token_source import AuthMode, TokenResponse
from .azure_auth import AzureAuth, REFRESH_EXPIRY_BUFFER_SECONDS

__all__ = [
    # Scopes
    "DEFAULT_SCOPES",
    "get_scopes",
    "format_scopes",
    # Credential Store
    "CredentialStore",
    "LocalDirectoryCredentialStore",
    "StoredCredentials",
    "StoredCredentialEntry",
    "get_credential_store",
    "set_credential_store",
    "resolve_directory",
    # Token lifecycle
    "AuthMode",
    "TokenResponse",
    "AzureAuth",
    "REFRESH_EXPIRY_BUFFER_SECONDS",
]
