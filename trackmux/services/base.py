from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import unquote

import httpx
import logging

from trackmux.configs import settings
from trackmux.schemas import Track
from trackmux.utils.http_utils import DownloadError, request_with_retry

logger = logging.getLogger(__name__)


class TrackServiceError(Exception):
    """Base exception for all track services."""
    pass


@dataclass
class VideoData:
    """A video loaded from a remote service."""

    url: str
    content_type: str
    filename: str
    content: bytes = field(default=b"", repr=False)


def filename_from_content_disposition(header: str | None) -> str | None:
    """Return the filename of a Content-Disposition header, if any."""
    if not header:
        return None
    for part in header.split(";"):
        key, _, value = part.strip().partition("=")
        key = key.lower()
        if key == "filename*" and "''" in value:
            return unquote(value.split("''", 1)[1].strip('"'))
        if key == "filename":
            return value.strip('"') or None
    return None


class BaseTrackService(ABC):
    """Base class for the remote services that supply videos and tracks by uuid.

    Subclasses choose the base URL and translate the service's track JSON into
    ``Track`` records. Requests are retried on transient errors; HTTP status
    errors surface as ``DownloadError`` with the upstream status code.
    """

    name: str = ""

    def __init__(self, base_url: str, request_headers: Optional[dict] = None, client_kwargs: Optional[dict] = None):
        self.base_url = base_url.rstrip("/")
        self.base_headers = {
            "user-agent": settings.user_agent,
        }
        self.base_headers.update(request_headers or {})
        # extra httpx.AsyncClient arguments (e.g. a mock transport in tests)
        self.client_kwargs = client_kwargs or {}

    async def _make_request(self, url: str, method: str = "GET", **kwargs) -> httpx.Response:
        try:
            return await request_with_retry(method, url, self.base_headers, client_kwargs=self.client_kwargs, **kwargs)
        except DownloadError:
            raise
        except Exception as e:
            # Unexpected exception, surface it as TrackServiceError
            logger.exception("Unhandled exception while requesting %s: %s", url, e)
            raise TrackServiceError(f"Request failed for URL {url}: {str(e)}")

    def video_url(self, uuid: str) -> str:
        return f"{self.base_url}/videos/{uuid}"

    def tracks_url(self, uuid: str) -> str:
        return f"{self.base_url}/videos/{uuid}/tracks"

    async def load_video(self, uuid: str) -> VideoData:
        """Download the video of ``uuid`` with its content type and filename."""
        url = self.video_url(uuid)
        response = await self._make_request(url)
        content_type = response.headers.get("content-type", "video/mp4").split(";")[0].strip()
        filename = filename_from_content_disposition(response.headers.get("content-disposition")) or f"{uuid}.mp4"
        logger.info("[%s] Loaded video %s (%s, %d bytes)", self.name, filename, content_type, len(response.content))
        return VideoData(url=url, content_type=content_type, filename=filename, content=response.content)

    async def load_tracks(self, uuid: str) -> Any:
        """Fetch the raw track JSON of ``uuid``."""
        response = await self._make_request(self.tracks_url(uuid))
        try:
            return response.json()
        except ValueError as e:
            raise TrackServiceError(f"Invalid track JSON for {uuid}: {e}")

    @abstractmethod
    def parse_tracks(self, data: Any) -> list[Track]:
        """Convert the service's track JSON into tracks."""
        pass
