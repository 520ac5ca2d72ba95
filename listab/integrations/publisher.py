"""
Listing Publisher Integration

Makes a variant live on the marketplace listing through the autoload
service. Calls are safe to repeat: the correlation id is derived from the
experiment id and the variant index, so a retried call updates the same
listing instead of creating a new one.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
import structlog

from listab.config import Settings, get_settings
from listab.errors import CollaboratorError

logger = structlog.get_logger()


def correlation_id(experiment_id: uuid.UUID, variant_index: int) -> str:
    """External correlation id for a variant listing."""
    return f"ab-{experiment_id}-{variant_index}"


@dataclass
class PublishResult:
    """Outcome of a publish call."""
    listing_ref: Optional[str]
    published_at: datetime = field(default_factory=datetime.utcnow)


class ListingPublisher(ABC):
    """Contract for taking a variant live."""

    @abstractmethod
    async def make_live(
        self,
        experiment_id: uuid.UUID,
        variant_index: int,
        listing: Dict[str, Any],
    ) -> PublishResult:
        """
        Publish a variant.

        Raises:
            CollaboratorError: If the listing could not be published
        """


class AutoloadPublisher(ListingPublisher):
    """
    HTTP client for the marketplace autoload service.

    When disabled, calls are logged and skipped with an empty listing ref.
    """

    def __init__(
        self,
        base_url: str = None,
        api_key: str = None,
        enabled: bool = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.base_url = base_url or settings.publisher_url
        self.api_key = api_key if api_key is not None else settings.publisher_api_key
        self.enabled = enabled if enabled is not None else settings.publisher_enabled
        self.timeout = timeout or settings.publisher_timeout
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

        logger.info(
            "Autoload publisher initialized",
            enabled=self.enabled,
            url=self.base_url,
        )

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()

    async def make_live(
        self,
        experiment_id: uuid.UUID,
        variant_index: int,
        listing: Dict[str, Any],
    ) -> PublishResult:
        ad_id = correlation_id(experiment_id, variant_index)

        if not self.enabled:
            logger.debug(
                "Publish skipped (publisher disabled)",
                experiment_id=str(experiment_id),
                variant_index=variant_index,
            )
            return PublishResult(listing_ref=None)

        try:
            client = await self._get_http_client()
            response = await client.put(
                f"/api/v1/listings/{ad_id}",
                json={
                    "ad_id": ad_id,
                    "experiment_id": str(experiment_id),
                    "variant_index": variant_index,
                    **listing,
                },
            )
            response.raise_for_status()
            data = response.json() if response.content else {}
        except (httpx.HTTPError, ValueError) as e:
            raise CollaboratorError("publisher", str(e), cause=e) from e

        if not isinstance(data, dict):
            data = {}
        listing_ref = data.get("listing_id") or data.get("id") or ad_id
        logger.info(
            "Variant published",
            experiment_id=str(experiment_id),
            variant_index=variant_index,
            listing_ref=listing_ref,
        )
        return PublishResult(listing_ref=str(listing_ref))


def get_publisher(settings: Optional[Settings] = None) -> ListingPublisher:
    """Create the configured listing publisher."""
    return AutoloadPublisher(settings=settings or get_settings())
