import logging

import httpx
import tenacity
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from trackmux.configs import settings

logger = logging.getLogger(__name__)


class DownloadError(Exception):
    def __init__(self, status_code, message):
        self.status_code = status_code
        self.message = message
        super().__init__(message)


def create_httpx_client(follow_redirects: bool = True, **kwargs) -> httpx.AsyncClient:
    """
    Create an HTTPX AsyncClient configured from the transport settings.

    Args:
        follow_redirects (bool): Whether to follow 3xx redirects automatically.
        **kwargs: Additional AsyncClient keyword arguments (e.g. ``transport``).

    Returns:
        httpx.AsyncClient: Configured client.
    """
    transport_config = settings.transport_config
    kwargs.setdefault("timeout", transport_config.timeout)
    kwargs.setdefault("verify", transport_config.verify_ssl)
    if transport_config.proxy_url and "transport" not in kwargs:
        kwargs.setdefault("proxy", transport_config.proxy_url)

    return httpx.AsyncClient(follow_redirects=follow_redirects, **kwargs)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=4, max=10),
    retry=retry_if_exception_type(DownloadError),
)
async def fetch_with_retry(client, method, url, headers, **kwargs):
    """
    Fetch a URL with retry logic.

    Timeouts, connection errors and 5xx responses are retried; other HTTP
    errors fail at once.

    Raises:
        DownloadError: If the request fails after retries.
        httpx.HTTPStatusError: For 4xx responses.
    """
    try:
        response = await client.request(method, url, headers=headers, **kwargs)
        response.raise_for_status()
        return response
    except httpx.TimeoutException:
        logger.warning(f"Timeout while requesting {url}")
        raise DownloadError(409, f"Timeout while requesting {url}")
    except httpx.HTTPStatusError as e:
        logger.error(f"HTTP error {e.response.status_code} while requesting {url}")
        if e.response.status_code < 500:
            raise e
        raise DownloadError(e.response.status_code, f"HTTP error {e.response.status_code} while requesting {url}")
    except httpx.RequestError as e:
        logger.warning(f"Error while requesting {url}: {e}")
        raise DownloadError(502, f"Error while requesting {url}: {e}")


async def request_with_retry(method: str, url: str, headers: dict, client_kwargs: dict | None = None, **kwargs):
    """
    Send an HTTP request with retry logic.

    Raises:
        DownloadError: If the request fails, carrying the upstream status code.
    """
    async with create_httpx_client(**(client_kwargs or {})) as client:
        try:
            return await fetch_with_retry(client, method, url, headers, **kwargs)
        except httpx.HTTPStatusError as e:
            raise DownloadError(e.response.status_code, f"HTTP error {e.response.status_code} while requesting {url}")
        except tenacity.RetryError as e:
            raise DownloadError(502, f"Request failed after retries: {e.last_attempt.exception()}")
        except DownloadError as e:
            logger.error(f"Failed to perform request: {e}")
            raise
