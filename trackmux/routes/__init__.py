from .tracks import tracks_router
from .media import media_router
from .sources import sources_router

__all__ = ["tracks_router", "media_router", "sources_router"]
