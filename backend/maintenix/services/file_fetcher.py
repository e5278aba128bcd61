import logging
from typing import Protocol

import httpx

from maintenix.services.errors import TransportError


logger = logging.getLogger(__name__)


class FileFetcher(Protocol):
    def fetch(self, url: str) -> bytes: ...


class HttpFileFetcher:
    """Descarga el fichero subido desde su URL publica."""

    def __init__(self, timeout_seconds: float = 30.0, client: httpx.Client | None = None) -> None:
        self.timeout_seconds = timeout_seconds
        self._client = client

    def fetch(self, url: str) -> bytes:
        try:
            if self._client is not None:
                response = self._client.get(url, timeout=self.timeout_seconds)
            else:
                response = httpx.get(url, timeout=self.timeout_seconds, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(f"Failed to fetch file: HTTP {exc.response.status_code}")
        except httpx.HTTPError as exc:
            raise TransportError(f"Failed to fetch file: {exc}")
        logger.debug("Fetched %s bytes from %s", len(response.content), url)
        return response.content
