"""Remote document loading with per-run caching.

A ``RemoteCache`` belongs to exactly one resolution run. Every distinct
normalized URL gets a single future; all references targeting that URL wait
on it and receive the same document or the same ``RemoteLoadError``.
"""

import json
import logging
import posixpath
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any
from urllib.parse import urldefrag, urlsplit, urlunsplit

import yaml

from jsonrefs.exceptions import DocumentError, RemoteLoadError, ResolutionTimeoutError
from jsonrefs.fetcher import Fetcher, RequestHook
from jsonrefs.plumbing.walker import walk

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """Normalize a URL for use as a cache key.

    Lower-cases the scheme and host, drops default ports and the fragment,
    and collapses ``.``/``..`` path segments.
    """
    url, _ = urldefrag(url)
    parts = urlsplit(url)
    scheme = parts.scheme.lower()

    netloc = parts.netloc
    if parts.hostname:
        host = f"[{parts.hostname}]" if ":" in parts.hostname else parts.hostname
        userinfo = parts.netloc.rpartition("@")[0]
        netloc = f"{userinfo}@{host}" if userinfo else host
        if parts.port is not None and DEFAULT_PORTS.get(scheme) != parts.port:
            netloc = f"{netloc}:{parts.port}"

    path = parts.path
    if path:
        normalized = posixpath.normpath(path)
        if path.endswith("/") and not normalized.endswith("/"):
            normalized += "/"
        path = normalized

    return urlunsplit((scheme, netloc, path, parts.query, ""))


def to_base_url(location: str | Path | None) -> str:
    """Turn a base location (URL, filesystem path or None for the cwd) into an absolute URL."""
    if location is None:
        return Path.cwd().as_uri() + "/"

    location = str(location)
    scheme = urlsplit(location).scheme
    # Single-letter schemes are Windows drive letters
    if len(scheme) > 1:
        return normalize_url(location)

    path = Path(location).expanduser().resolve()
    if path.is_dir():
        return path.as_uri() + "/"
    return path.as_uri()


def parse_document(content: str | bytes, url: str) -> Any:
    """Parse fetched content as JSON (for ``.json`` URLs) or YAML.

    Raises:
        RemoteLoadError: If the content cannot be decoded or parsed
    """
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise RemoteLoadError(f"Failed to decode document {url}: {e}", url) from e

    try:
        if urlsplit(url).path.endswith(".json"):
            return json.loads(content)
        return yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise RemoteLoadError(f"Failed to parse document {url}: {e}", url) from e


class RemoteCache:
    """Loads each remote document at most once per resolution run.

    ``fetches`` counts documents requested from the fetcher. ``hits`` counts
    loads served by a document that an earlier load or ``seed`` already
    provided; prefetching alone is neither.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        request_hook: RequestHook | None = None,
        max_concurrency: int = 8,
        deadline: float | None = None,
    ):
        self.fetcher = fetcher
        self.request_hook = request_hook
        self.max_concurrency = max_concurrency
        self.deadline = deadline
        self.fetches = 0
        self.hits = 0
        self._futures: dict[str, Future[Any]] = {}
        self._served: set[str] = set()
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None

    def __enter__(self) -> "RemoteCache":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Abandon pending fetches and release worker threads."""
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def seed(self, url: str, document: Any) -> None:
        """Register an already loaded document so ``url`` is never fetched."""
        url = normalize_url(url)
        future: Future[Any] = Future()
        future.set_result(document)
        with self._lock:
            self._futures[url] = future
            self._served.add(url)

    def prefetch(self, urls: list[str]) -> None:
        """Start fetching every URL without waiting for the results."""
        for url in urls:
            self._get_future(normalize_url(url))

    def load(self, url: str) -> Any:
        """Return the parsed document for ``url``.

        The returned object is shared by every caller; callers must copy it
        before handing it out.

        Raises:
            RemoteLoadError: If fetching or parsing failed
            ResolutionTimeoutError: If the run deadline passed while waiting
        """
        url = normalize_url(url)
        future = self._get_future(url)
        with self._lock:
            if url in self._served:
                self.hits += 1
            else:
                self._served.add(url)

        try:
            return future.result(timeout=self._remaining())
        except TimeoutError:
            self.close()
            raise ResolutionTimeoutError(f"Timed out waiting for remote document {url}") from None

    def check_deadline(self) -> None:
        """Fail the run once its deadline has passed.

        Raises:
            ResolutionTimeoutError: If the deadline has passed
        """
        if self.deadline is not None and time.monotonic() >= self.deadline:
            self.close()
            raise ResolutionTimeoutError("Timed out resolving references")

    def _get_future(self, url: str) -> Future[Any]:
        with self._lock:
            future = self._futures.get(url)
            if future is not None:
                return future

            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.max_concurrency, thread_name_prefix="jsonrefs")
            future = self._executor.submit(self._fetch, url)
            self._futures[url] = future
            self.fetches += 1
            return future

    def _remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def _fetch(self, url: str) -> Any:
        logger.debug(f"Fetching remote document {url}")
        try:
            content = self.fetcher(url, self.request_hook)
        except RemoteLoadError:
            raise
        except Exception as e:
            raise RemoteLoadError(f"Failed to load remote document {url}: {str(e)}", url) from e

        document = parse_document(content, url)
        # YAML aliases can build containers that contain themselves
        try:
            for _ in walk(document):
                pass
        except DocumentError as e:
            raise RemoteLoadError(f"Invalid document {url}: {e.message}", url) from e

        logger.debug(f"Loaded remote document {url}")
        return document
