"""
Process-level entry point for ms-graph-devtools.

Azure installs the shared configuration and hands out lazily built services
that share one AzureAuth. Replacing or clearing the configuration drops the
shared AzureAuth and every cached service, so the next access rebuilds them.
"""

import logging
from typing import List, Optional

from .auth.azure_auth import AzureAuth
from .auth.credential_store import CredentialStore, StoredCredentialEntry, get_credential_store
from .client import Calendar, Outlook, SharePoint, Teams
from .core.config import AzureConfig, ConfigHolder, get_config_holder

logger = logging.getLogger(__name__)


class Azure:
    """Service locator over a configuration holder."""

    def __init__(
        self, holder: Optional[ConfigHolder] = None, store: Optional[CredentialStore] = None
    ) -> None:
        self._holder = holder or get_config_holder()
        self._store = store
        self._auth: Optional[AzureAuth] = None
        self._outlook: Optional[Outlook] = None
        self._calendar: Optional[Calendar] = None
        self._teams: Optional[Teams] = None
        self._sharepoint: Optional[SharePoint] = None
        self._holder.subscribe(self._on_config_change)

    def config(self, config: AzureConfig) -> None:
        """Replace the shared configuration."""
        self._holder.configure(config)

    def reset(self) -> None:
        """Clear the shared configuration and every cached service."""
        self._holder.reset()

    @property
    def auth(self) -> AzureAuth:
        if self._auth is None:
            self._auth = AzureAuth(holder=self._holder, store=self._store)
        return self._auth

    @property
    def outlook(self) -> Outlook:
        if self._outlook is None:
            self._outlook = Outlook(auth=self.auth)
        return self._outlook

    @property
    def calendar(self) -> Calendar:
        if self._calendar is None:
            self._calendar = Calendar(auth=self.auth)
        return self._calendar

    @property
    def teams(self) -> Teams:
        if self._teams is None:
            self._teams = Teams(auth=self.auth)
        return self._teams

    @property
    def sharepoint(self) -> SharePoint:
        if self._sharepoint is None:
            self._sharepoint = SharePoint(auth=self.auth)
        return self._sharepoint

    async def list_stored_credentials(self) -> List[StoredCredentialEntry]:
        return await self._credential_store().list_credentials()

    async def clear_stored_credentials(
        self, tenant_id: Optional[str] = None, client_id: Optional[str] = None
    ) -> None:
        """Delete one tenant/client token file, or all of them when either id is missing."""
        await self._credential_store().clear(tenant_id, client_id)

    def close(self) -> None:
        """Stop following the configuration holder."""
        self._holder.unsubscribe(self._on_config_change)

    def _credential_store(self) -> CredentialStore:
        return self._store or get_credential_store()

    def _on_config_change(self, config: Optional[AzureConfig]) -> None:
        self._auth = None
        self._outlook = None
        self._calendar = None
        self._teams = None
        self._sharepoint = None
        logger.debug("Configuration changed, cached services dropped")


# Default instance over the process configuration holder
azure = Azure()
