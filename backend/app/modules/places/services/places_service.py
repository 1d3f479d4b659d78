"""
Google Places Lookup Service
Business search around a free-text location, enriched with WhatsApp presence.

Flow:
1. Geocode the location (fallback: Places Text Search)
2. Derive a search radius from the geocoded viewport
3. Nearby Search with keyword + normalized type, following next_page_token
4. Place Details for every hit (phone, address, rating, maps url)
5. Strict-normalize phones and ask Z-API which ones have WhatsApp
"""
import asyncio
import logging
import math
import unicodedata
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx

from app.modules.whatsapp_inbox.services.zapi_client import ZAPIClient
from app.shared.core.config import settings
from app.shared.core.constants import (
    TIMEOUT_GOOGLE_PLACES,
    GOOGLE_GEOCODE_URL,
    GOOGLE_TEXTSEARCH_URL,
    GOOGLE_NEARBY_URL,
    GOOGLE_DETAILS_URL,
    GOOGLE_PHOTO_URL,
)
from app.shared.utils.exceptions import (
    EntityNotFoundError,
    PlacesNotConfiguredError,
    ProviderError,
    ProviderNotConfiguredError,
)
from app.shared.utils.http_client import http_client_manager
from app.shared.utils.phone_utils import normalize_phone_strict

logger = logging.getLogger("places_service")

MIN_RADIUS_METERS = 3000
MAX_RADIUS_METERS = 50000
WIDE_RADIUS_METERS = 15000
MAX_RESULTS_WIDE = 60
MAX_RESULTS_NARROW = 30
PAGE_TOKEN_DELAY_SECONDS = 1.5
EARTH_RADIUS_METERS = 6371000
LANGUAGE = "pt-BR"
REGION = "br"
DETAILS_FIELDS = "name,formatted_address,formatted_phone_number,rating,url"
DEFAULT_PHOTO_WIDTH = 600


@dataclass
class Coordinates:
    lat: float
    lng: float
    radius: int
    source: str  # geocode | textsearch


# ============================================
# GEOMETRY & TEXT HELPERS
# ============================================

def normalize_place_type(value: str) -> Optional[str]:
    """'Pet Shop' -> 'pet_shop'; accents stripped, at most 60 chars."""
    decomposed = unicodedata.normalize("NFD", value.lower())
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    normalized = re.sub(r"[^a-z_]", "", re.sub(r"\s+", "_", stripped))[:60]
    return normalized or None


def haversine_meters(origin: Dict[str, float], target: Dict[str, float]) -> float:
    d_lat = math.radians(target["lat"] - origin["lat"])
    d_lng = math.radians(target["lng"] - origin["lng"])
    lat1 = math.radians(origin["lat"])
    lat2 = math.radians(target["lat"])

    a = math.sin(d_lat / 2) ** 2 + math.sin(d_lng / 2) ** 2 * math.cos(lat1) * math.cos(lat2)
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def radius_from_viewport(center: Dict[str, float], viewport: Optional[Dict[str, Any]]) -> int:
    """
    Distance from the center to the farthest viewport corner, clamped to
    [MIN_RADIUS_METERS, MAX_RADIUS_METERS].
    """
    if not viewport:
        return MIN_RADIUS_METERS

    ne = viewport["northeast"]
    sw = viewport["southwest"]
    corners = [
        ne,
        sw,
        {"lat": ne["lat"], "lng": sw["lng"]},
        {"lat": sw["lat"], "lng": ne["lng"]},
    ]
    radius = max(haversine_meters(center, corner) for corner in corners)
    return min(max(round(radius), MIN_RADIUS_METERS), MAX_RADIUS_METERS)


def max_results_for(radius: int) -> int:
    return MAX_RESULTS_WIDE if radius >= WIDE_RADIUS_METERS else MAX_RESULTS_NARROW


def photo_proxy_url(photo_reference: str, maxwidth: int = DEFAULT_PHOTO_WIDTH) -> str:
    return f"/api/places/photo?ref={quote(photo_reference, safe='')}&maxwidth={maxwidth}"


# ============================================
# SERVICE
# ============================================

class PlacesService:
    """
    Google Places client plus WhatsApp enrichment.

    sleep is injectable so tests do not wait on the page-token delay.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        provider: Optional[ZAPIClient] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_MAPS_API_KEY
        self.provider = provider
        self._http_client = http_client
        self._sleep = sleep

    def _client(self) -> httpx.AsyncClient:
        return self._http_client or http_client_manager.get_client()

    def _require_key(self) -> str:
        if not self.api_key:
            raise PlacesNotConfiguredError("GOOGLE_MAPS_API_KEY is not configured")
        return self.api_key

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._client().get(url, params=params, timeout=TIMEOUT_GOOGLE_PLACES)
        except httpx.HTTPError as e:
            logger.error(f"Google request failed: url={url} error={e.__class__.__name__}: {e}")
            raise ProviderError(f"Google Places request failed: {e.__class__.__name__}") from e
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                "Google returned a malformed response",
                provider_status=response.status_code
            ) from e
        return data if isinstance(data, dict) else {}

    # ============================================
    # LOCATION
    # ============================================

    async def _geocode(self, location: str) -> Optional[Coordinates]:
        data = await self._get_json(GOOGLE_GEOCODE_URL, {
            "address": location,
            "language": LANGUAGE,
            "region": REGION,
            "components": "country:BR",
            "key": self.api_key,
        })
        results = data.get("results") or []
        logger.info(f"Geocode response: status={data.get('status')} results={len(results)}")

        if data.get("status") == "REQUEST_DENIED":
            raise ProviderError(data.get("error_message") or "Geocoding API returned REQUEST_DENIED")

        if data.get("status") != "OK" or not results:
            return None

        geometry = results[0].get("geometry") or {}
        center = geometry.get("location") or {}
        if not center.get("lat") or not center.get("lng"):
            return None

        viewport = geometry.get("bounds") or geometry.get("viewport")
        return Coordinates(
            lat=center["lat"],
            lng=center["lng"],
            radius=radius_from_viewport(center, viewport),
            source="geocode",
        )

    async def _text_search(self, location: str) -> Optional[Coordinates]:
        data = await self._get_json(GOOGLE_TEXTSEARCH_URL, {
            "query": location,
            "language": LANGUAGE,
            "region": REGION,
            "key": self.api_key,
        })
        results = data.get("results") or []
        logger.info(f"Text search response: status={data.get('status')} results={len(results)}")

        if data.get("status") == "REQUEST_DENIED":
            raise ProviderError(data.get("error_message") or "Places Text Search returned REQUEST_DENIED")

        if data.get("status") != "OK" or not results:
            return None

        center = (results[0].get("geometry") or {}).get("location") or {}
        if not center.get("lat") or not center.get("lng"):
            return None
        return Coordinates(lat=center["lat"], lng=center["lng"], radius=MIN_RADIUS_METERS, source="textsearch")

    async def resolve_location(self, location: str) -> Coordinates:
        """
        Geocode first, Text Search second. A failing geocoder (denied key,
        transport error) does not stop the fallback.

        Raises:
            EntityNotFoundError: neither lookup found the location
        """
        for lookup in (self._geocode, self._text_search):
            try:
                coords = await lookup(location)
            except ProviderError as e:
                logger.warning(f"Location lookup {lookup.__name__} failed: {e}")
                continue
            if coords:
                return coords

        logger.info(f"Location not found: location={location!r}")
        raise EntityNotFoundError("Location", location)

    # ============================================
    # SEARCH
    # ============================================

    async def _nearby(self, coords: Coordinates, place_type: str, max_results: int) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {
            "location": f"{coords.lat},{coords.lng}",
            "radius": str(coords.radius),
            "keyword": place_type,
            "language": LANGUAGE,
            "key": self.api_key,
        }
        normalized_type = normalize_place_type(place_type)
        if normalized_type:
            params["type"] = normalized_type

        collected: List[Dict[str, Any]] = []
        while params and len(collected) < max_results:
            data = await self._get_json(GOOGLE_NEARBY_URL, params)
            results = data.get("results")
            logger.info(
                f"Nearby response: status={data.get('status')} "
                f"results={len(results or [])} next_page={bool(data.get('next_page_token'))}"
            )

            if data.get("status") == "REQUEST_DENIED":
                raise ProviderError(
                    data.get("error_message") or "Places Nearby returned REQUEST_DENIED",
                    detail="Check the key restrictions (IP / referrer) and enabled APIs"
                )

            if isinstance(results, list):
                collected.extend(results)

            token = data.get("next_page_token")
            if token and len(collected) < max_results:
                # Google rejects a page token used immediately after issue
                await self._sleep(PAGE_TOKEN_DELAY_SECONDS)
                params = {"pagetoken": token, "key": self.api_key}
            else:
                params = None

        return collected[:max_results]

    async def _details(self, place: Dict[str, Any]) -> Dict[str, Any]:
        place_id = place.get("place_id")
        data = await self._get_json(GOOGLE_DETAILS_URL, {
            "place_id": place_id,
            "fields": DETAILS_FIELDS,
            "language": LANGUAGE,
            "key": self.api_key,
        })
        details = data.get("result") or {}

        rating = details.get("rating")
        if not isinstance(rating, (int, float)):
            rating = place.get("rating") if isinstance(place.get("rating"), (int, float)) else None

        photos = details.get("photos") or place.get("photos") or []
        photo_ref = photos[0].get("photo_reference") if photos else None

        return {
            "id": place_id,
            "name": details.get("name") or place.get("name") or "Unnamed place",
            "address": details.get("formatted_address") or place.get("vicinity") or "Address not provided",
            "phone": details.get("formatted_phone_number"),
            "rating": rating,
            "maps_url": details.get("url") or f"https://www.google.com/maps/place/?q=place_id:{place_id}",
            "photo_url": photo_proxy_url(photo_ref) if photo_ref else None,
        }

    async def _whatsapp_status(self, phones: List[str]) -> Dict[str, bool]:
        """Best effort: a failing provider leaves every place without WhatsApp."""
        if not phones or self.provider is None:
            return {}
        try:
            return await self.provider.phone_exists_batch(phones)
        except (ProviderError, ProviderNotConfiguredError) as e:
            logger.warning(f"WhatsApp existence check failed: {e.message}")
            return {}

    async def search(self, place_type: str, location: str, only_whatsapp: bool = False) -> List[Dict[str, Any]]:
        """
        Search businesses of place_type around location.

        Returns:
            Place dicts with has_whatsapp set; only WhatsApp numbers when only_whatsapp
        """
        self._require_key()
        place_type = place_type.strip()
        location = location.strip()

        coords = await self.resolve_location(location)
        logger.info(
            f"Coordinates found: lat={coords.lat} lng={coords.lng} "
            f"radius={coords.radius} source={coords.source}"
        )

        places = await self._nearby(coords, place_type, max_results_for(coords.radius))
        if not places:
            return []

        detailed = await asyncio.gather(*(self._details(place) for place in places))

        normalized = [normalize_phone_strict(place["phone"]) for place in detailed]
        status = await self._whatsapp_status([p for p in normalized if p])

        enriched = []
        for place, phone in zip(detailed, normalized):
            place["has_whatsapp"] = bool(phone and status.get(phone, False))
            enriched.append(place)

        if only_whatsapp:
            enriched = [place for place in enriched if place["has_whatsapp"]]

        logger.info(f"Places search done: type={place_type!r} found={len(places)} returned={len(enriched)}")
        return enriched

    # ============================================
    # PHOTO PROXY
    # ============================================

    async def fetch_photo(self, reference: str, maxwidth: int = 400) -> Tuple[bytes, str]:
        """Returns (image bytes, content type)."""
        api_key = self._require_key()
        try:
            response = await self._client().get(
                GOOGLE_PHOTO_URL,
                params={"photoreference": reference, "maxwidth": str(maxwidth), "key": api_key},
                timeout=TIMEOUT_GOOGLE_PLACES,
            )
        except httpx.HTTPError as e:
            logger.error(f"Google photo fetch failed: error={e.__class__.__name__}: {e}")
            raise ProviderError(f"Failed to fetch the photo from Google: {e.__class__.__name__}") from e
        if response.status_code >= 400:
            logger.error(f"Google photo fetch failed: status={response.status_code}")
            raise ProviderError("Failed to fetch the photo from Google", provider_status=response.status_code)

        return response.content, response.headers.get("content-type") or "image/jpeg"
