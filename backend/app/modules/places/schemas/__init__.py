from .places_schemas import PlaceOut, PlacesSearchResponse

__all__ = ["PlaceOut", "PlacesSearchResponse"]
