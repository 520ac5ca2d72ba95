"""
Unit Tests for the Listing Publisher

Tests for the autoload publisher client.
"""

import json
import uuid

import httpx
import pytest

from listab.errors import CollaboratorError
from listab.integrations.publisher import AutoloadPublisher, correlation_id

LISTING = {"title": "Road bike", "description": "", "price": 1000.0, "images": [], "category": "transport"}


def make_publisher(settings, handler, enabled=True):
    return AutoloadPublisher(
        base_url="https://autoload.test",
        api_key="secret",
        enabled=enabled,
        transport=httpx.MockTransport(handler),
        settings=settings,
    )


def test_correlation_id():
    experiment_id = uuid.UUID("12345678-1234-5678-1234-567812345678")

    assert correlation_id(experiment_id, 2) == "ab-12345678-1234-5678-1234-567812345678-2"


class TestAutoloadPublisher:
    """Tests for AutoloadPublisher."""

    @pytest.mark.asyncio
    async def test_disabled_publisher_skips_call(self, settings):
        def handler(request):
            raise AssertionError("unexpected request")

        publisher = make_publisher(settings, handler, enabled=False)
        result = await publisher.make_live(uuid.uuid4(), 0, LISTING)

        assert result.listing_ref is None

    @pytest.mark.asyncio
    async def test_puts_listing_under_correlation_id(self, settings):
        experiment_id = uuid.uuid4()
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"listing_id": "avito-42"})

        result = await make_publisher(settings, handler).make_live(experiment_id, 1, LISTING)

        assert result.listing_ref == "avito-42"
        request = requests[0]
        assert request.method == "PUT"
        assert request.url.path == f"/api/v1/listings/ab-{experiment_id}-1"
        assert request.headers["Authorization"] == "Bearer secret"
        body = json.loads(request.content)
        assert body["title"] == "Road bike"
        assert body["variant_index"] == 1

    @pytest.mark.asyncio
    async def test_listing_ref_defaults_to_correlation_id(self, settings):
        experiment_id = uuid.uuid4()

        def handler(request):
            return httpx.Response(204)

        result = await make_publisher(settings, handler).make_live(experiment_id, 0, LISTING)

        assert result.listing_ref == f"ab-{experiment_id}-0"

    @pytest.mark.asyncio
    async def test_server_error_raises_collaborator_error(self, settings):
        def handler(request):
            return httpx.Response(503)

        with pytest.raises(CollaboratorError) as exc_info:
            await make_publisher(settings, handler).make_live(uuid.uuid4(), 0, LISTING)

        assert exc_info.value.collaborator == "publisher"
