import logging

from fastapi import APIRouter, HTTPException, Request, Response

from trackmux.schemas import Track
from trackmux.services.base import TrackServiceError
from trackmux.utils.http_utils import DownloadError

sources_router = APIRouter()
logger = logging.getLogger(__name__)


@sources_router.get("/{uuid}/tracks", summary="Load tracks of a remote source", response_model=list[Track])
async def load_source_tracks(uuid: str, request: Request):
    """Load and parse the tracks of ``uuid`` from the configured track service."""
    service = request.app.state.track_service
    try:
        return service.parse_tracks(await service.load_tracks(uuid))
    except DownloadError as e:
        logger.error(f"Loading tracks of {uuid} failed: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except TrackServiceError as e:
        logger.error(f"Loading tracks of {uuid} failed: {str(e)}")
        raise HTTPException(status_code=400, detail=str(e))


@sources_router.get("/{uuid}/video", summary="Load the video of a remote source")
async def load_source_video(uuid: str, request: Request):
    """Download the video of ``uuid`` from the configured track service."""
    service = request.app.state.track_service
    try:
        video = await service.load_video(uuid)
    except DownloadError as e:
        logger.error(f"Loading video of {uuid} failed: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except TrackServiceError as e:
        logger.error(f"Loading video of {uuid} failed: {str(e)}")
        raise HTTPException(status_code=400, detail=str(e))

    return Response(
        content=video.content,
        media_type=video.content_type,
        headers={"content-disposition": f'inline; filename="{video.filename}"'},
    )
