"""Source video download over HTTP."""
import logging
from pathlib import Path
from typing import Optional

import httpx

from shortreel.config import settings
from shortreel.pipeline.errors import DownloadError
from shortreel.utils.retry import retry_async

logger = logging.getLogger(__name__)


class _ServerError(Exception):
    """5xx response, worth retrying."""
    pass


class HttpDownloader:
    """Streams remote files (usually signed storage URLs) to local disk."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=settings.download_timeout_seconds,
            follow_redirects=True,
        )

    async def _fetch(self, url: str, dest: Path) -> None:
        async with self._client.stream("GET", url) as response:
            if response.status_code >= 500:
                raise _ServerError(f"HTTP {response.status_code}")
            if response.status_code >= 400:
                raise DownloadError(f"Failed to download video: HTTP {response.status_code}")

            with open(dest, "wb") as f:
                async for chunk in response.aiter_bytes():
                    f.write(chunk)

    async def download(self, url: str, dest: str | Path) -> Path:
        """
        Download ``url`` to ``dest``.

        Transport errors and 5xx responses are retried; 4xx is final.

        Raises:
            DownloadError: If the download fails or the file is empty
        """
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Downloading source to {dest}")

        try:
            await retry_async(
                lambda: self._fetch(url, dest),
                description="Source download",
                retry_on=(httpx.TransportError, _ServerError),
            )
        except (httpx.HTTPError, _ServerError) as e:
            raise DownloadError(f"Download failed: {e}") from e

        size = dest.stat().st_size if dest.exists() else 0
        if size == 0:
            raise DownloadError("Downloaded file is empty")

        logger.info(f"Downloaded {size} bytes")
        return dest

    async def aclose(self) -> None:
        """Close the HTTP client if this downloader created it."""
        if self._owns_client:
            await self._client.aclose()
