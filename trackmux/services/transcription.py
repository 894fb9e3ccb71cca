from typing import Any

from trackmux.services.base import BaseTrackService, TrackServiceError
from trackmux.schemas import Track


class TranscriptionTrackService(BaseTrackService):
    """Transcription API: ``{"segments": [{"start", "end", "text", "speaker"?, "id"?}]}``.

    Segments carry no dubbing metadata, so every other field takes its
    default. A segment id is kept when present.
    """

    name = "transcription"

    def parse_tracks(self, data: Any) -> list[Track]:
        segments = data.get("segments") if isinstance(data, dict) else data
        if not isinstance(segments, list):
            raise TrackServiceError("Transcription payload has no segment list")

        tracks = []
        for position, segment in enumerate(segments):
            try:
                fields = {
                    "start": float(segment["start"]),
                    "end": float(segment["end"]),
                    "text": str(segment.get("text", "")).strip(),
                    "speaker_id": str(segment.get("speaker") or ""),
                }
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise TrackServiceError(f"Invalid transcription segment {position}: {e}")
            if segment.get("id") is not None:
                fields["id"] = str(segment["id"])
            tracks.append(Track(**fields))
        return tracks
