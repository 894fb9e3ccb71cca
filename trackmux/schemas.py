import uuid

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


def new_track_id() -> str:
    return str(uuid.uuid4())


class Track(BaseModel):
    """
    One editable timed text/dubbing segment.

    The field names are shared with the editor UI and the remote track
    services and must not change. ``start`` and ``end`` are seconds; no
    ordering or overlap invariant is enforced.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_track_id, description="Unique identifier, stable across edits.")
    start: float = Field(..., description="Start time in seconds.")
    end: float = Field(..., description="End time in seconds.")
    speaker_id: str = Field("", description="Identifier of the speaker.")
    path: str = Field("", description="Path to the original audio chunk.")
    text: str = Field("", description="Original-language text.")
    for_dubbing: bool = Field(False, description="Whether the segment is synthesized by the dubbing step.")
    ssml_gender: str = Field("", description="SSML voice gender.")
    translated_text: str = Field("", description="Dub-language text.")
    assigned_voice: str = Field("", description="Voice assigned for dubbing.")
    pitch: float = Field(0, description="Voice pitch adjustment.")
    speed: float = Field(1, description="Voice speed adjustment.")
    volume_gain_db: float = Field(0, description="Volume gain in decibels.")
    dubbed_path: str = Field("", description="Path to the dubbed audio chunk.")
    chunk_size: int = Field(0, description="Chunk size used when processing the segment.")


TrackListAdapter = TypeAdapter(list[Track])
