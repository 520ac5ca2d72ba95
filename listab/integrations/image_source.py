"""
Public Folder Image Source

Lists downloadable image links from a public cloud-disk share.
"""

import re
from typing import Any, Dict, List, Optional

import httpx
import structlog

from listab.config import Settings, get_settings
from listab.errors import CollaboratorError

logger = structlog.get_logger()

IMAGE_PATTERN = re.compile(r"\.(jpe?g|png|webp|gif)$", re.IGNORECASE)


def is_image_file(name: str) -> bool:
    return bool(IMAGE_PATTERN.search(name or ""))


class PublicFolderClient:
    """Client for public share links (folder or single file)."""

    def __init__(
        self,
        api_url: str = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.api_url = api_url or settings.image_source_api_url
        self.timeout = timeout
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()

    async def list_images(self, public_url: str, limit: int = 100) -> List[str]:
        """
        Get direct download links for every image behind a public link.

        Raises:
            CollaboratorError: If the share cannot be read or is not an image
        """
        try:
            client = await self._get_http_client()
            response = await client.get(
                "/public/resources",
                params={"public_key": public_url, "limit": limit},
            )
            response.raise_for_status()
            resource: Dict[str, Any] = response.json()

            if resource.get("type") == "dir":
                items = resource.get("_embedded", {}).get("items", [])
                urls = []
                for item in items:
                    if item.get("type", "file") == "file" and is_image_file(item.get("name", "")):
                        urls.append(await self._download_url(public_url, item.get("path")))
            elif is_image_file(resource.get("name", "")):
                urls = [await self._download_url(public_url)]
            else:
                raise CollaboratorError("image_source", "shared file is not an image")
        except (httpx.HTTPError, KeyError, ValueError, AttributeError) as e:
            raise CollaboratorError("image_source", str(e), cause=e) from e

        logger.info("Listed public folder images", count=len(urls))
        return urls

    async def _download_url(self, public_url: str, path: Optional[str] = None) -> str:
        client = await self._get_http_client()
        params = {"public_key": public_url}
        if path:
            params["path"] = path
        response = await client.get("/public/resources/download", params=params)
        response.raise_for_status()
        return response.json()["href"]
