"""
Places Lookup API Endpoints

GET /api/places/search?type=&location=&only_whatsapp=
GET /api/places/photo?ref=&maxwidth=

Host-gated only: neither route reads tenant data.
"""
import logging
from fastapi import APIRouter, Depends, Query, Response

from app.modules.places.schemas.places_schemas import PlaceOut, PlacesSearchResponse
from app.modules.places.services.places_service import PlacesService
from app.modules.tenancy.dependencies import TenantContext, get_optional_user_tenant_context
from app.modules.whatsapp_inbox.services.zapi_client import ZAPIClient, get_zapi_client

router = APIRouter()
logger = logging.getLogger("places_api")


def get_places_service(provider: ZAPIClient = Depends(get_zapi_client)) -> PlacesService:
    return PlacesService(provider=provider)


@router.get("/search", response_model=PlacesSearchResponse, summary="Search businesses near a location")
async def search_places(
    response: Response,
    type: str = Query(..., min_length=1, description="Business type or keyword, e.g. 'pet shop'"),
    location: str = Query(..., min_length=1, description="Neighborhood + city works best"),
    only_whatsapp: bool = Query(False),
    tenant: TenantContext = Depends(get_optional_user_tenant_context),
    service: PlacesService = Depends(get_places_service),
):
    results = await service.search(type, location, only_whatsapp=only_whatsapp)
    response.headers["Cache-Control"] = "s-maxage=60, stale-while-revalidate=60"
    return PlacesSearchResponse(results=[PlaceOut(**place) for place in results])


@router.get("/photo", summary="Proxy a Google Places photo")
async def place_photo(
    ref: str = Query(..., min_length=1),
    maxwidth: int = Query(400, ge=1, le=1600),
    tenant: TenantContext = Depends(get_optional_user_tenant_context),
    service: PlacesService = Depends(get_places_service),
):
    content, content_type = await service.fetch_photo(ref, maxwidth=maxwidth)
    return Response(
        content=content,
        media_type=content_type,
        headers={"Cache-Control": "public, max-age=86400"},
    )
