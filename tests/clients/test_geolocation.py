"""Unit tests for location providers."""

import pytest

from tappi.clients.geolocation import Coordinates, StaticLocationProvider


def test_retrieval_config_shape():
    config = Coordinates(latitude=-36.85, longitude=174.76).to_retrieval_config()

    assert config == {"retrieval_config": {"lat_lng": {"latitude": -36.85, "longitude": 174.76}}}


@pytest.mark.asyncio
async def test_static_provider_returns_configured_location():
    provider = StaticLocationProvider(latitude=48.85, longitude=2.35)

    assert await provider.locate() == Coordinates(latitude=48.85, longitude=2.35)


@pytest.mark.parametrize("latitude,longitude", [(None, None), (48.85, None), (None, 2.35)])
@pytest.mark.asyncio
async def test_static_provider_without_location(latitude, longitude):
    provider = StaticLocationProvider(latitude=latitude, longitude=longitude)

    assert await provider.locate() is None
