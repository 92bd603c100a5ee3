"""Google Places API integration — nearby Catholic churches.

Uses the Places API (New) Nearby Search endpoint, restricted to the
`catholic_church` type within a 10 km circle around the user.

Gracefully degrades: without an API key a single simulated parish is
returned; any other failure (timeout, HTTP error, invalid response) yields
an empty list.
"""

from __future__ import annotations

import logging

import httpx

from src.config import is_populated
from src.data.models import Parish

logger = logging.getLogger(__name__)

_PLACES_NEARBY_URL = "https://places.googleapis.com/v1/places:searchNearby"
_PHOTO_MEDIA_URL = "https://places.googleapis.com/v1/{name}/media"
_DIRECTIONS_URL = "https://www.google.com/maps/dir/?api=1&destination={lat},{lng}"
_TIMEOUT_SECONDS = 5

_FIELD_MASK = ",".join([
    "places.displayName",
    "places.formattedAddress",
    "places.location",
    "places.rating",
    "places.userRatingCount",
    "places.currentOpeningHours",
    "places.photos",
    "places.googleMapsUri",
])

SEARCH_RADIUS_METERS = 10000
MAX_RESULTS = 12
SIMULATED_OFFSET = 0.002

DEFAULT_PARISH_NAME = "Igreja Católica"
DEFAULT_ADDRESS = "Endereço não disponível"


class LookupUnavailable(Exception):
    """The places lookup failed; callers receive an empty result instead."""


def simulated_parish(lat: float, lng: float) -> Parish:
    """Placeholder result shown while no Maps key is configured."""
    return Parish(
        name="Paróquia Sagrado Coração (Simulado)",
        address="Configure sua GOOGLE_MAPS_API_KEY para ver dados reais.",
        lat=lat + SIMULATED_OFFSET,
        lng=lng + SIMULATED_OFFSET,
        rating=5.0,
        user_ratings_total=1,
        open_now=True,
        url="https://maps.google.com",
        photo_url="https://images.unsplash.com/photo-1543357480-c60d40007a3f?auto=format&fit=crop&q=80&w=400",
    )


def decode_place(place: dict, api_key: str) -> Parish | None:
    """Map one Places API record to a Parish; None when it is unusable."""
    try:
        return _decode_place(place, api_key)
    except (AttributeError, TypeError, ValueError) as exc:
        logger.debug("Skipping malformed place record: %s", exc)
        return None


def _decode_place(place: dict, api_key: str) -> Parish | None:
    location = place.get("location") or {}
    lat = location.get("latitude")
    lng = location.get("longitude")
    if lat is None or lng is None:
        return None
    lat, lng = float(lat), float(lng)

    photo_url = None
    photos = place.get("photos") or []
    if photos and photos[0].get("name"):
        photo_url = (
            _PHOTO_MEDIA_URL.format(name=photos[0]["name"])
            + f"?maxHeightPx=400&maxWidthPx=400&key={api_key}"
        )

    return Parish(
        name=(place.get("displayName") or {}).get("text") or DEFAULT_PARISH_NAME,
        address=place.get("formattedAddress") or DEFAULT_ADDRESS,
        lat=lat,
        lng=lng,
        rating=place.get("rating"),
        user_ratings_total=place.get("userRatingCount"),
        open_now=(place.get("currentOpeningHours") or {}).get("openNow"),
        url=place.get("googleMapsUri"),
        photo_url=photo_url,
        directions_url=_DIRECTIONS_URL.format(lat=lat, lng=lng),
    )


async def _fetch_nearby(lat: float, lng: float, api_key: str) -> list[dict]:
    try:
        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
            resp = await client.post(
                _PLACES_NEARBY_URL,
                json={
                    "includedTypes": ["catholic_church"],
                    "maxResultCount": MAX_RESULTS,
                    "locationRestriction": {
                        "circle": {
                            "center": {"latitude": lat, "longitude": lng},
                            "radius": SEARCH_RADIUS_METERS,
                        }
                    },
                    "languageCode": "pt-BR",
                },
                headers={
                    "X-Goog-Api-Key": api_key,
                    "X-Goog-FieldMask": _FIELD_MASK,
                },
            )
            resp.raise_for_status()
            data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise LookupUnavailable(str(exc)) from exc

    if not isinstance(data, dict):
        raise LookupUnavailable("unexpected response body")
    places = data.get("places") or []
    if not isinstance(places, list):
        raise LookupUnavailable("unexpected places payload")
    return places


async def search_nearby(lat: float, lng: float, api_key: str | None) -> list[Parish]:
    """Return Catholic churches near (lat, lng). Never raises."""
    if not is_populated(api_key):
        logger.warning("Google Maps offline: no API key, returning simulated parish")
        return [simulated_parish(lat, lng)]

    try:
        places = await _fetch_nearby(lat, lng, api_key)
    except LookupUnavailable as exc:
        logger.warning("Google Places nearby search failed at (%s, %s): %s", lat, lng, exc)
        return []

    parishes = []
    for place in places:
        parish = decode_place(place, api_key)
        if parish is None:
            logger.debug("Skipping place without usable location")
            continue
        parishes.append(parish)
    logger.info("Found %d parishes near (%s, %s)", len(parishes), lat, lng)
    return parishes
