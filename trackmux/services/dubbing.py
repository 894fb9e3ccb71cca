from typing import Any

from pydantic import ValidationError

from trackmux.services.base import BaseTrackService, TrackServiceError
from trackmux.schemas import Track, TrackListAdapter


class DubbingTrackService(BaseTrackService):
    """Dubbing API: tracks are full Track records, ids included."""

    name = "dubbing"

    def parse_tracks(self, data: Any) -> list[Track]:
        if isinstance(data, dict):
            data = data.get("tracks", [])
        try:
            return TrackListAdapter.validate_python(data)
        except ValidationError as e:
            raise TrackServiceError(f"Invalid dubbing tracks: {e}")
