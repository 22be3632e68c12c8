"""Default fetch capability for remote documents.

The resolution engine only decides when a URL is fetched and caches the
result; the transport is whatever callable is passed as ``fetcher``. This
module provides the default one, backed by httpx for ``http``/``https`` URLs
and by the filesystem for ``file`` URLs.
"""

import logging
from collections.abc import Callable
from urllib.parse import urlsplit

import httpx

from jsonrefs.exceptions import RemoteLoadError
from jsonrefs.plumbing.path import file_url_to_path
from jsonrefs.settings import JsonRefsSettings

logger = logging.getLogger(__name__)

RequestHook = Callable[[httpx.Request], None]
Fetcher = Callable[[str, RequestHook | None], str | bytes]


class HttpxFetcher:
    """Fetches raw document content for a URL."""

    def __init__(self, settings: JsonRefsSettings | None = None, transport: httpx.BaseTransport | None = None):
        self.settings = settings or JsonRefsSettings()
        self.transport = transport

    def __call__(self, url: str, request_hook: RequestHook | None = None) -> str | bytes:
        scheme = urlsplit(url).scheme
        match scheme:
            case "file":
                return self._read_file(url)
            case "http" | "https":
                return self._get(url, request_hook)
            case _:
                raise RemoteLoadError(f"Unsupported URL scheme '{scheme}': {url}", url)

    def _read_file(self, url: str) -> bytes:
        path = file_url_to_path(url)
        logger.debug(f"Reading {path}")
        try:
            return path.read_bytes()
        except OSError as e:
            raise RemoteLoadError(f"Failed to read {path}: {e}", url) from e

    def _get(self, url: str, request_hook: RequestHook | None) -> bytes:
        # The hook runs on every outgoing request, redirects included
        event_hooks = {"request": [request_hook]} if request_hook else {}
        logger.debug(f"GET {url}")
        try:
            with httpx.Client(
                transport=self.transport,
                timeout=self.settings.http_timeout,
                follow_redirects=self.settings.follow_redirects,
                headers={"User-Agent": self.settings.user_agent},
                event_hooks=event_hooks,
            ) as client:
                response = client.get(url)
                response.raise_for_status()
                return response.content
        except httpx.TimeoutException as e:
            raise RemoteLoadError(f"HTTP request timed out: {str(e)}", url) from None
        except httpx.HTTPStatusError as e:
            raise RemoteLoadError(f"HTTP request failed with status {e.response.status_code}: {url}", url) from None
        except httpx.HTTPError as e:
            raise RemoteLoadError(f"HTTP request failed: {str(e)}", url) from None
