"""Tests for src.integrations.google_places — Nearby Search for parishes."""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from src.integrations.google_places import (
    DEFAULT_ADDRESS,
    DEFAULT_PARISH_NAME,
    decode_place,
    search_nearby,
)


def _mock_client(places=None, post_side_effect=None):
    mock_resp = MagicMock()
    mock_resp.json.return_value = {"places": places} if places is not None else {}
    mock_resp.raise_for_status = MagicMock()

    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client.post = AsyncMock(return_value=mock_resp, side_effect=post_side_effect)
    return mock_client


SE_CATHEDRAL = {
    "displayName": {"text": "Catedral da Sé"},
    "formattedAddress": "Praça da Sé, São Paulo - SP",
    "location": {"latitude": -23.5505, "longitude": -46.6340},
    "rating": 4.8,
    "userRatingCount": 25000,
    "currentOpeningHours": {"openNow": True},
    "photos": [{"name": "places/abc/photos/xyz"}],
    "googleMapsUri": "https://maps.google.com/?cid=1",
}


class TestSimulatedResult:
    @pytest.mark.asyncio
    async def test_no_key_returns_single_simulated_parish(self):
        result = await search_nearby(-23.0, -46.0, "")
        assert len(result) == 1
        parish = result[0]
        assert "Simulado" in parish.name
        assert parish.lat == pytest.approx(-23.0 + 0.002)
        assert parish.lng == pytest.approx(-46.0 + 0.002)

    @pytest.mark.asyncio
    async def test_placeholder_key_counts_as_missing(self):
        with patch("src.integrations.google_places.httpx.AsyncClient") as client_cls:
            result = await search_nearby(1.0, 2.0, "undefined")
        client_cls.assert_not_called()
        assert len(result) == 1


class TestSearchNearby:
    @pytest.mark.asyncio
    async def test_decodes_places(self):
        mock_client = _mock_client([SE_CATHEDRAL])
        with patch("src.integrations.google_places.httpx.AsyncClient", return_value=mock_client):
            result = await search_nearby(-23.55, -46.63, "fake-key")

        assert len(result) == 1
        parish = result[0]
        assert parish.name == "Catedral da Sé"
        assert parish.rating == 4.8
        assert parish.user_ratings_total == 25000
        assert parish.open_now is True
        assert parish.photo_url.startswith("https://places.googleapis.com/v1/places/abc/photos/xyz/media")
        assert "key=fake-key" in parish.photo_url
        assert parish.directions_url == (
            "https://www.google.com/maps/dir/?api=1&destination=-23.5505,-46.634"
        )

    @pytest.mark.asyncio
    async def test_request_shape(self):
        mock_client = _mock_client([])
        with patch("src.integrations.google_places.httpx.AsyncClient", return_value=mock_client):
            await search_nearby(-23.55, -46.63, "fake-key")

        call = mock_client.post.await_args
        body = call.kwargs["json"]
        assert body["includedTypes"] == ["catholic_church"]
        assert body["maxResultCount"] == 12
        assert body["locationRestriction"]["circle"]["radius"] == 10000
        assert body["languageCode"] == "pt-BR"
        assert call.kwargs["headers"]["X-Goog-Api-Key"] == "fake-key"
        assert "places.location" in call.kwargs["headers"]["X-Goog-FieldMask"]

    @pytest.mark.asyncio
    async def test_places_without_location_are_skipped(self):
        no_location = {"displayName": {"text": "Capela sem mapa"}}
        mock_client = _mock_client([no_location, SE_CATHEDRAL])
        with patch("src.integrations.google_places.httpx.AsyncClient", return_value=mock_client):
            result = await search_nearby(0.0, 0.0, "fake-key")
        assert [p.name for p in result] == ["Catedral da Sé"]

    @pytest.mark.asyncio
    async def test_no_places_key_returns_empty(self):
        mock_client = _mock_client(None)
        with patch("src.integrations.google_places.httpx.AsyncClient", return_value=mock_client):
            assert await search_nearby(0.0, 0.0, "fake-key") == []

    @pytest.mark.asyncio
    async def test_transport_error_returns_empty(self):
        mock_client = _mock_client(post_side_effect=httpx.ConnectTimeout("timeout"))
        with patch("src.integrations.google_places.httpx.AsyncClient", return_value=mock_client):
            assert await search_nearby(0.0, 0.0, "fake-key") == []

    @pytest.mark.asyncio
    async def test_http_error_returns_empty(self):
        mock_client = _mock_client([])
        request = httpx.Request("POST", "https://places.googleapis.com/v1/places:searchNearby")
        response = httpx.Response(403, request=request)
        mock_client.post.return_value.raise_for_status.side_effect = httpx.HTTPStatusError(
            "forbidden", request=request, response=response
        )
        with patch("src.integrations.google_places.httpx.AsyncClient", return_value=mock_client):
            assert await search_nearby(0.0, 0.0, "fake-key") == []


class TestDecodePlace:
    def test_defaults_for_missing_fields(self):
        parish = decode_place({"location": {"latitude": 1, "longitude": 2}}, "k")
        assert parish.name == DEFAULT_PARISH_NAME
        assert parish.address == DEFAULT_ADDRESS
        assert parish.photo_url is None
        assert parish.open_now is None
        assert parish.rating is None

    @pytest.mark.parametrize("place", [
        "oops",
        {"location": "here"},
        {"location": {"latitude": "abc", "longitude": 1}},
        {"location": {"latitude": 1, "longitude": 2}, "photos": ["x"]},
        {"location": {"latitude": 1, "longitude": 2}, "displayName": "Matriz"},
    ])
    def test_malformed_records_decode_to_none(self, place):
        assert decode_place(place, "k") is None


class TestMalformedResponses:
    @pytest.mark.asyncio
    async def test_bad_records_are_skipped(self):
        bad = [
            "oops",
            {"location": {"latitude": "abc", "longitude": 1}},
            {"location": {"latitude": 1, "longitude": 2}, "currentOpeningHours": [True]},
        ]
        mock_client = _mock_client(bad + [SE_CATHEDRAL])
        with patch("src.integrations.google_places.httpx.AsyncClient", return_value=mock_client):
            result = await search_nearby(0.0, 0.0, "fake-key")
        assert [p.name for p in result] == ["Catedral da Sé"]

    @pytest.mark.asyncio
    async def test_places_not_a_list_returns_empty(self):
        mock_client = _mock_client({"0": SE_CATHEDRAL})
        with patch("src.integrations.google_places.httpx.AsyncClient", return_value=mock_client):
            assert await search_nearby(0.0, 0.0, "fake-key") == []

    @pytest.mark.asyncio
    async def test_body_not_an_object_returns_empty(self):
        mock_client = _mock_client([])
        mock_client.post.return_value.json.return_value = ["not", "an", "object"]
        with patch("src.integrations.google_places.httpx.AsyncClient", return_value=mock_client):
            assert await search_nearby(0.0, 0.0, "fake-key") == []
