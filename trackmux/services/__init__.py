from .base import BaseTrackService, TrackServiceError, VideoData
from .factory import TrackServiceFactory, get_track_service

__all__ = ["BaseTrackService", "TrackServiceError", "VideoData", "TrackServiceFactory", "get_track_service"]
