"""SharePoint site and list operations for Microsoft Graph."""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from ..auth.azure_auth import AzureAuth
from ..core.config import AzureConfig
from .base import GraphClientBase

logger = logging.getLogger(__name__)

T = TypeVar("T")

SITE_ID_REQUIRED = "Site ID is required. Provide it in the constructor, set_site_id(), or as parameter."


def _site_summary(site: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": site.get("id"),
        "displayName": site.get("displayName"),
        "name": site.get("name"),
        "webUrl": site.get("webUrl"),
        "description": site.get("description"),
    }


class SharePoint(GraphClientBase):
    """Site and list item operations, optionally bound to a default site."""

    def __init__(
        self,
        config: Optional[AzureConfig] = None,
        *,
        auth: Optional[AzureAuth] = None,
        site_id: Optional[str] = None,
    ) -> None:
        super().__init__(config, auth=auth)
        self._site_id = site_id

    def set_site_id(self, site_id: str) -> None:
        self._site_id = site_id

    def get_site_id(self) -> Optional[str]:
        return self._site_id

    def _resolve_site(self, site_id: Optional[str]) -> str:
        target = site_id or self._site_id
        if not target:
            raise ValueError(SITE_ID_REQUIRED)
        return target

    async def search_sites(self, query: str) -> List[Dict[str, Any]]:
        """Search sites by keyword."""
        sites = await self._get_values("sites", {"search": query})
        return [_site_summary(site) for site in sites]

    async def get_site_by_path(self, hostname: str, site_path: str) -> Dict[str, Any]:
        """Resolve a site from its hostname and server-relative path.

        Args:
            hostname: e.g. 'contoso.sharepoint.com'.
            site_path: e.g. '/sites/engineering'.
        """
        site = await self._get_json(f"sites/{hostname}:{site_path}")
        return _site_summary(site)

    async def get_lists(self, site_id: Optional[str] = None) -> List[Dict[str, Any]]:
        lists = await self._get_values(f"sites/{self._resolve_site(site_id)}/lists")
        return [
            {
                "id": lst.get("id"),
                "displayName": lst.get("displayName"),
                "name": lst.get("name"),
                "description": lst.get("description"),
                "webUrl": lst.get("webUrl"),
            }
            for lst in lists
        ]

    async def get_list(self, list_id_or_name: str, site_id: Optional[str] = None) -> Dict[str, Any]:
        return await self._get_json(f"sites/{self._resolve_site(site_id)}/lists/{list_id_or_name}")

    async def get_list_items(
        self,
        list_id: str,
        filter: Optional[str] = None,
        orderby: Optional[str] = None,
        top: Optional[int] = None,
        expand: Optional[str] = None,
        site_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Get list items with optional OData query options.

        Args:
            list_id: List ID or name.
            filter: $filter expression.
            orderby: $orderby expression.
            top: $top page size.
            expand: $expand expression (usually 'fields').
            site_id: Overrides the default site.

        Returns:
            The items of the first page.
        """
        path = f"sites/{self._resolve_site(site_id)}/lists/{list_id}/items"
        params: Dict[str, Any] = {}
        if filter:
            params["$filter"] = filter
        if orderby:
            params["$orderby"] = orderby
        if top:
            params["$top"] = top
        if expand:
            params["$expand"] = expand
        return await self._get_values(path, params or None)

    async def get_list_item(
        self,
        list_id: str,
        item_id: str,
        expand: Optional[str] = None,
        site_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        path = f"sites/{self._resolve_site(site_id)}/lists/{list_id}/items/{item_id}"
        return await self._get_json(path, {"$expand": expand} if expand else None)

    async def create_list_item(
        self, list_id: str, fields: Dict[str, Any], site_id: Optional[str] = None
    ) -> Dict[str, Any]:
        path = f"sites/{self._resolve_site(site_id)}/lists/{list_id}/items"
        response = await self._request("POST", path, json={"fields": fields})
        return response.json()

    async def update_list_item(
        self, list_id: str, item_id: str, fields: Dict[str, Any], site_id: Optional[str] = None
    ) -> Dict[str, Any]:
        path = f"sites/{self._resolve_site(site_id)}/lists/{list_id}/items/{item_id}"
        response = await self._request("PATCH", path, json={"fields": fields})
        return response.json()

    async def delete_list_item(self, list_id: str, item_id: str, site_id: Optional[str] = None) -> None:
        path = f"sites/{self._resolve_site(site_id)}/lists/{list_id}/items/{item_id}"
        await self._request("DELETE", path)
        logger.debug(f"Deleted item {item_id} from list {list_id}")

    async def delete_list_items(
        self, list_id: str, item_ids: Sequence[str], site_id: Optional[str] = None
    ) -> None:
        """Delete several items concurrently. The first failure is raised."""
        await asyncio.gather(
            *(self.delete_list_item(list_id, item_id, site_id) for item_id in item_ids)
        )
        logger.info(f"Deleted {len(item_ids)} items from list {list_id}")

    async def query_and_process(
        self,
        list_id: str,
        filter: str,
        processor: Callable[[Dict[str, Any]], T],
        delete_after_process: bool = False,
        site_id: Optional[str] = None,
    ) -> List[T]:
        """Process matching items oldest first, optionally deleting them afterwards.

        Args:
            list_id: List ID or name.
            filter: $filter expression selecting the items.
            processor: Called with each item (fields expanded).
            delete_after_process: Delete every processed item once all succeeded.
            site_id: Overrides the default site.

        Returns:
            The processor results, in item order.
        """
        items = await self.get_list_items(
            list_id,
            filter=filter,
            orderby="createdDateTime asc",
            expand="fields",
            site_id=site_id,
        )
        if not items:
            return []

        results = [processor(item) for item in items]

        if delete_after_process:
            await self.delete_list_items(list_id, [item["id"] for item in items], site_id)

        return results

    async def get_latest_item(
        self,
        list_id: str,
        order_by: str = "createdDateTime desc",
        filter: Optional[str] = None,
        site_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Get the first item by the given ordering, or None for an empty list."""
        items = await self.get_list_items(
            list_id, filter=filter, orderby=order_by, top=1, expand="fields", site_id=site_id
        )
        return items[0] if items else None

    async def get_list_columns(self, list_id: str, site_id: Optional[str] = None) -> List[Dict[str, Any]]:
        columns = await self._get_values(f"sites/{self._resolve_site(site_id)}/lists/{list_id}/columns")
        return [
            {
                "id": c.get("id"),
                "name": c.get("name"),
                "displayName": c.get("displayName"),
                "columnGroup": c.get("columnGroup"),
                "description": c.get("description"),
                "hidden": c.get("hidden"),
                "readOnly": c.get("readOnly"),
            }
            for c in columns
        ]
