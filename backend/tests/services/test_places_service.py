import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from app.modules.places.services.places_service import (
    MAX_RADIUS_METERS,
    MIN_RADIUS_METERS,
    PlacesService,
    max_results_for,
    normalize_place_type,
    radius_from_viewport,
)
from app.shared.utils.exceptions import (
    EntityNotFoundError,
    PlacesNotConfiguredError,
    ProviderError,
)

CENTER = {"lat": -23.0, "lng": -43.45}


def google_handler(routes):
    """MockTransport handler dispatching on the Google endpoint path."""
    def handler(request: httpx.Request) -> httpx.Response:
        for suffix, responder in routes.items():
            if request.url.path.endswith(suffix):
                return responder(request)
        return httpx.Response(404, json={"status": "NOT_FOUND"})
    return handler


def make_service(routes, provider=None):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(google_handler(routes)))
    sleep = AsyncMock()
    service = PlacesService(api_key="key-1", provider=provider, http_client=http_client, sleep=sleep)
    return service, sleep


def geocode_ok(request):
    return httpx.Response(200, json={
        "status": "OK",
        "results": [{
            "formatted_address": "Recreio dos Bandeirantes, Rio de Janeiro - RJ",
            "geometry": {
                "location": CENTER,
                "viewport": {
                    "northeast": {"lat": -22.99, "lng": -43.44},
                    "southwest": {"lat": -23.01, "lng": -43.46},
                },
            },
        }],
    })


def details_for(request):
    place_id = request.url.params["place_id"]
    phones = {"p1": "(21) 99876-5432", "p2": "(21) 3456-7890", "p3": None}
    return httpx.Response(200, json={"status": "OK", "result": {
        "name": f"Place {place_id}",
        "formatted_address": f"Street {place_id}",
        "formatted_phone_number": phones.get(place_id),
        "url": f"https://maps.google.com/?cid={place_id}",
    }})


# --- 1. PURE HELPERS ---

@pytest.mark.parametrize("raw, expected", [
    ("Pet Shop", "pet_shop"),
    ("Padaria São João", "padaria_sao_joao"),
    ("123", None),
])
def test_normalize_place_type(raw, expected):
    assert normalize_place_type(raw) == expected


def test_radius_is_clamped():
    assert radius_from_viewport(CENTER, None) == MIN_RADIUS_METERS

    tiny = {"northeast": {"lat": -22.9999, "lng": -43.4499}, "southwest": {"lat": -23.0001, "lng": -43.4501}}
    assert radius_from_viewport(CENTER, tiny) == MIN_RADIUS_METERS

    huge = {"northeast": {"lat": -20.0, "lng": -40.0}, "southwest": {"lat": -26.0, "lng": -47.0}}
    assert radius_from_viewport(CENTER, huge) == MAX_RADIUS_METERS


def test_max_results_depends_on_radius():
    assert max_results_for(15000) == 60
    assert max_results_for(14999) == 30


# --- 2. SEARCH ---

def test_search_enriches_with_whatsapp():
    provider = MagicMock()
    provider.phone_exists_batch = AsyncMock(return_value={"5521998765432": True, "552134567890": False})

    routes = {
        "/geocode/json": geocode_ok,
        "/nearbysearch/json": lambda r: httpx.Response(200, json={"status": "OK", "results": [
            {"place_id": "p1", "name": "A", "photos": [{"photo_reference": "ref/1"}]},
            {"place_id": "p2", "name": "B", "rating": 4.2},
            {"place_id": "p3", "name": "C"},
        ]}),
        "/details/json": details_for,
    }

    async def test_logic():
        service, _ = make_service(routes, provider)
        results = await service.search("pet shop", "Recreio dos Bandeirantes, Rio de Janeiro")

        assert [p["id"] for p in results] == ["p1", "p2", "p3"]
        assert [p["has_whatsapp"] for p in results] == [True, False, False]
        assert results[0]["photo_url"] == "/api/places/photo?ref=ref%2F1&maxwidth=600"
        assert results[1]["rating"] == 4.2
        provider.phone_exists_batch.assert_awaited_once_with(["5521998765432", "552134567890"])

        only = await service.search("pet shop", "Recreio", only_whatsapp=True)
        assert [p["id"] for p in only] == ["p1"]

    asyncio.run(test_logic())


def test_nearby_follows_page_token_with_delay():
    pages = {
        None: {"status": "OK", "results": [{"place_id": f"a{i}"} for i in range(20)], "next_page_token": "T2"},
        "T2": {"status": "OK", "results": [{"place_id": f"b{i}"} for i in range(20)], "next_page_token": "T3"},
    }

    def nearby(request):
        return httpx.Response(200, json=pages[request.url.params.get("pagetoken")])

    routes = {"/geocode/json": geocode_ok, "/nearbysearch/json": nearby, "/details/json": details_for}

    async def test_logic():
        service, sleep = make_service(routes)
        results = await service.search("padaria", "Recreio")

        # Narrow radius caps the search at 30 results; the third page is never requested
        assert len(results) == 30
        sleep.assert_awaited_once_with(1.5)

    asyncio.run(test_logic())


def test_geocode_falls_back_to_text_search():
    routes = {
        "/geocode/json": lambda r: httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []}),
        "/textsearch/json": lambda r: httpx.Response(200, json={"status": "OK", "results": [
            {"geometry": {"location": CENTER}},
        ]}),
    }

    async def test_logic():
        service, _ = make_service(routes)
        coords = await service.resolve_location("Recreio")
        assert coords.source == "textsearch"
        assert coords.radius == MIN_RADIUS_METERS

    asyncio.run(test_logic())


def test_location_not_found_is_404():
    routes = {
        "/geocode/json": lambda r: httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []}),
        "/textsearch/json": lambda r: httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []}),
    }

    async def test_logic():
        service, _ = make_service(routes)
        with pytest.raises(EntityNotFoundError) as exc:
            await service.search("pet shop", "Nowhere")
        assert exc.value.status_code == 404

    asyncio.run(test_logic())


def test_nearby_request_denied_is_502():
    routes = {
        "/geocode/json": geocode_ok,
        "/nearbysearch/json": lambda r: httpx.Response(200, json={
            "status": "REQUEST_DENIED", "error_message": "API key not authorized",
        }),
    }

    async def test_logic():
        service, _ = make_service(routes)
        with pytest.raises(ProviderError) as exc:
            await service.search("pet shop", "Recreio")
        assert exc.value.status_code == 502
        assert exc.value.message == "API key not authorized"

    asyncio.run(test_logic())


def refuse_connection(request):
    raise httpx.ConnectError("connection refused", request=request)


def test_nearby_transport_error_is_502():
    routes = {
        "/geocode/json": geocode_ok,
        "/nearbysearch/json": refuse_connection,
    }

    async def test_logic():
        service, _ = make_service(routes)
        with pytest.raises(ProviderError) as exc:
            await service.search("pet shop", "Recreio")
        assert exc.value.status_code == 502
        assert "ConnectError" in exc.value.message

    asyncio.run(test_logic())


def test_geocode_timeout_still_falls_back_to_text_search():
    def geocode_timeout(request):
        raise httpx.ReadTimeout("timed out", request=request)

    routes = {
        "/geocode/json": geocode_timeout,
        "/textsearch/json": lambda r: httpx.Response(200, json={"status": "OK", "results": [
            {"geometry": {"location": CENTER}},
        ]}),
    }

    async def test_logic():
        service, _ = make_service(routes)
        coords = await service.resolve_location("Recreio")
        assert coords.source == "textsearch"

    asyncio.run(test_logic())


def test_missing_api_key():
    async def test_logic():
        service = PlacesService(api_key="", http_client=httpx.AsyncClient())
        with pytest.raises(PlacesNotConfiguredError) as exc:
            await service.search("pet shop", "Recreio")
        assert exc.value.status_code == 500

    asyncio.run(test_logic())


# --- 3. PHOTO PROXY ---

def test_fetch_photo():
    def photo(request):
        assert request.url.params["photoreference"] == "ref-1"
        assert request.url.params["maxwidth"] == "600"
        return httpx.Response(200, content=b"JPEGDATA", headers={"content-type": "image/jpeg"})

    async def test_logic():
        service, _ = make_service({"/place/photo": photo})
        content, content_type = await service.fetch_photo("ref-1", maxwidth=600)
        assert content == b"JPEGDATA"
        assert content_type == "image/jpeg"

    asyncio.run(test_logic())


def test_fetch_photo_upstream_error():
    async def test_logic():
        service, _ = make_service({"/place/photo": lambda r: httpx.Response(403)})
        with pytest.raises(ProviderError):
            await service.fetch_photo("ref-1")

    asyncio.run(test_logic())


def test_fetch_photo_transport_error_is_502():
    async def test_logic():
        service, _ = make_service({"/place/photo": refuse_connection})
        with pytest.raises(ProviderError) as exc:
            await service.fetch_photo("ref-1")
        assert exc.value.status_code == 502

    asyncio.run(test_logic())
