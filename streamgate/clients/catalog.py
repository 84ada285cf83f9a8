"""Catalog client - content metadata lookup."""

from typing import Optional

import httpx

from streamgate.errors import CatalogError
from streamgate.models.content import ContentMetadata
from streamgate.models.settings import StoreSettings


class CatalogClient:
    """Async client for the catalog service.

    Args:
        settings: Endpoint settings, defaults to the global configuration
        client: Pre-built httpx client
    """

    def __init__(
        self,
        settings: Optional[StoreSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if settings is None:
            from streamgate.config import get_config

            settings = get_config().settings.store
        self._client = client or httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_content(self, content_id: str) -> ContentMetadata:
        """Fetch pricing metadata for one content item.

        Raises:
            CatalogError: If the content cannot be loaded
        """
        try:
            response = await self._client.get(f"/movies/{content_id}")
        except httpx.HTTPError as e:
            raise CatalogError(f"Could not load content {content_id}: {e}") from e

        if response.status_code == 404:
            raise CatalogError(f"Content not found: {content_id}", status_code=404)
        if response.is_error:
            raise CatalogError(
                f"Catalog returned HTTP {response.status_code} for {content_id}",
                status_code=response.status_code,
            )

        try:
            return ContentMetadata.from_catalog(response.json())
        except ValueError as e:
            raise CatalogError(f"Malformed catalog response for {content_id}: {e}") from e
