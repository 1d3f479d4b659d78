"""
Places Lookup - Pydantic Schemas
"""
from typing import Optional, List
from pydantic import BaseModel


class PlaceOut(BaseModel):
    id: str
    name: str
    address: str
    phone: Optional[str] = None
    rating: Optional[float] = None
    maps_url: str
    photo_url: Optional[str] = None
    has_whatsapp: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "id": "ChIJN1t_tDeuEmsRUsoyG83frY4",
                "name": "Pet Shop Recreio",
                "address": "Av. das Américas, 10000 - Recreio, Rio de Janeiro - RJ",
                "phone": "(21) 99876-5432",
                "rating": 4.6,
                "maps_url": "https://maps.google.com/?cid=123",
                "photo_url": "/api/places/photo?ref=abc&maxwidth=600",
                "has_whatsapp": True
            }
        }


class PlacesSearchResponse(BaseModel):
    results: List[PlaceOut]
