"""Base client with authenticated Microsoft Graph requests."""
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..auth.azure_auth import AzureAuth
from ..auth.oauth_config import GRAPH_BASE_URL
from ..core.config import AzureConfig

logger = logging.getLogger(__name__)


class GraphClientBase:
    """Base class for the Graph service wrappers."""

    def __init__(
        self, config: Optional[AzureConfig] = None, *, auth: Optional[AzureAuth] = None
    ) -> None:
        """Initialize with either a configuration or a ready AzureAuth.

        Args:
            config: Configuration merged over the shared one into a new AzureAuth.
            auth: Existing AzureAuth to share with other services.

        Raises:
            ValueError: Both config and auth were given.
        """
        if config is not None and auth is not None:
            raise ValueError("Pass either config or auth, not both")
        self.auth = auth if auth is not None else AzureAuth(config)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> httpx.Response:
        """Send one authenticated request through the 401 recovery wrapper.

        Args:
            method: HTTP method.
            path: Path relative to the Graph base URL, or an absolute URL.
            params: Query parameters.
            json: JSON body.

        Returns:
            The successful response.
        """
        url = path if path.startswith("https://") else f"{GRAPH_BASE_URL}/{path.lstrip('/')}"

        async def operation() -> httpx.Response:
            token = await self.auth.get_access_token()
            async with self.auth.get_http_client() as client:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers={"Authorization": f"Bearer {token}"},
                )
                response.raise_for_status()
                return response

        logger.debug(f"{method} {url}")
        return await self.auth.with_retry(operation)

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._request("GET", path, params=params)
        return response.json()

    async def _get_values(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Get the ``value`` array of a collection response (first page only)."""
        data = await self._get_json(path, params)
        return data.get("value", [])

    async def _get_all_pages(
        self, path: str, params: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Get every item of a collection, following @odata.nextLink."""
        data = await self._get_json(path, params)
        items = list(data.get("value", []))

        next_link = data.get("@odata.nextLink")
        while next_link:
            data = await self._get_json(next_link)
            items.extend(data.get("value", []))
            next_link = data.get("@odata.nextLink")

        return items
