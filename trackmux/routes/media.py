import logging
import re
from pathlib import PurePath
from typing import Annotated

from fastapi import APIRouter, File, Form, HTTPException, Request, Response, UploadFile
from pydantic import ValidationError

from trackmux.remuxer.engine import EngineBusyError, EngineError
from trackmux.remuxer.pipeline import AudioTrack, RebuildResult
from trackmux.schemas import TrackListAdapter

media_router = APIRouter()
logger = logging.getLogger(__name__)

_UNSAFE_HEADER_CHARS = re.compile(r'[^A-Za-z0-9._ -]+')


def _download_response(result: RebuildResult, filename: str) -> Response:
    safe_name = _UNSAFE_HEADER_CHARS.sub("_", filename)
    return Response(
        content=result.content,
        media_type=result.mime_type,
        headers={"content-disposition": f'attachment; filename="{safe_name}"'},
    )


def _raise_for_engine_error(action: str, error: Exception):
    if isinstance(error, EngineBusyError):
        raise HTTPException(status_code=503, detail=str(error))
    logger.error(f"{action} failed: {error}")
    raise HTTPException(status_code=502, detail=f"{action} failed: {error}")


def _audio_label(labels: list[str], index: int, upload: UploadFile) -> str:
    if index < len(labels) and labels[index]:
        return labels[index]
    return PurePath(upload.filename or "").stem or f"Audio {index + 1}"


@media_router.post("/rebuild", summary="Rebuild a media file with tracks and dub audio")
async def rebuild_media(
    request: Request,
    media: Annotated[UploadFile, File(description="Original media container.")],
    tracks: Annotated[str, Form(description="JSON list of tracks.")],
    audio: Annotated[list[UploadFile] | None, File(description="Encoded dub audio files, in stream order.")] = None,
    labels: Annotated[list[str] | None, Form(description="Title of each audio stream.")] = None,
    mime_type: Annotated[str | None, Form(description="Mime type of the output.")] = None,
):
    """
    Rebuild the uploaded container: original video, one titled stream per
    audio file, and the original and translated subtitle streams.
    """
    try:
        track_list = TrackListAdapter.validate_json(tracks)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid tracks: {e}")

    audio = audio or []
    labels = labels or []
    audio_tracks = []
    for index, upload in enumerate(audio):
        audio_tracks.append(
            AudioTrack(
                payload=await upload.read(),
                label=_audio_label(labels, index, upload),
                filename_hint=PurePath(upload.filename or "").suffix or None,
            )
        )

    media_name = media.filename or "media.mp4"
    try:
        result = await request.app.state.pipeline.rebuild(
            await media.read(),
            media_name,
            mime_type or media.content_type,
            track_list,
            audio_tracks,
        )
    except EngineError as e:
        _raise_for_engine_error("Rebuild", e)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return _download_response(result, f"output_{PurePath(media_name).name}")


@media_router.post("/merge", summary="Merge a video with audio files")
async def merge_media(
    request: Request,
    video: Annotated[UploadFile, File(description="Video container.")],
    audio: Annotated[list[UploadFile], File(description="Encoded audio files, in stream order.")],
):
    """Mux the video with every uploaded audio file as its own audio stream."""
    payloads = [await upload.read() for upload in audio]
    try:
        result = await request.app.state.pipeline.merge(await video.read(), payloads, video.filename or "video.mp4")
    except EngineError as e:
        _raise_for_engine_error("Merge", e)

    return _download_response(result, "output.mp4")
