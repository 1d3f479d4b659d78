from .places_service import PlacesService

__all__ = ["PlacesService"]
