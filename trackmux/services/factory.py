from typing import Dict, Type

from trackmux.configs import settings
from trackmux.services.base import BaseTrackService, TrackServiceError
from trackmux.services.dubbing import DubbingTrackService
from trackmux.services.transcription import TranscriptionTrackService


class TrackServiceFactory:
    """Factory for creating track services."""

    _services: Dict[str, Type[BaseTrackService]] = {
        "dubbing": DubbingTrackService,
        "transcription": TranscriptionTrackService,
    }

    @classmethod
    def get_service(cls, name: str, **kwargs) -> BaseTrackService:
        """Get the track service registered as ``name``, pointed at its configured base URL."""
        service_class = cls._services.get(name)
        if not service_class:
            raise TrackServiceError(f"Unsupported track service: {name}")
        base_url = kwargs.pop("base_url", None) or getattr(settings, f"{name}_api_url")
        return service_class(base_url, **kwargs)


def get_track_service(**kwargs) -> BaseTrackService:
    """Create the track service selected by ``settings.track_service``."""
    return TrackServiceFactory.get_service(settings.track_service, **kwargs)
