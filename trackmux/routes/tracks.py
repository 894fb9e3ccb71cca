import logging
from typing import Annotated

from fastapi import APIRouter, Body, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import PlainTextResponse

from trackmux.remuxer.engine import EngineBusyError
from trackmux.remuxer.subtitle_codec import SubtitleChannel, generate_subtitles
from trackmux.schemas import Track

tracks_router = APIRouter()
logger = logging.getLogger(__name__)


@tracks_router.post("/extract", summary="Extract tracks from a media file", response_model=list[Track])
async def extract_tracks(request: Request, media: Annotated[UploadFile, File(description="Media container.")]):
    """
    Extract the first subtitle stream of the uploaded container as tracks.

    A container without subtitles (or one the engine cannot read) yields an
    empty list rather than an error.
    """
    content = await media.read()
    try:
        return await request.app.state.pipeline.extract(content, media.filename or "media")
    except EngineBusyError as e:
        raise HTTPException(status_code=503, detail=str(e))


@tracks_router.post("/subtitles", summary="Render tracks as subtitle text", response_class=PlainTextResponse)
async def render_subtitles(
    tracks: Annotated[list[Track], Body()],
    channel: Annotated[SubtitleChannel, Query(description="Which text of each track to render.")] = SubtitleChannel.ORIGINAL,
):
    """Render tracks in the order given as subtitle text for one channel."""
    try:
        return PlainTextResponse(generate_subtitles(tracks, channel))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
