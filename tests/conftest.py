"""Shared pytest fixtures for jsonrefs tests."""

import json
import threading
from pathlib import Path
from typing import Any

import pytest
import yaml
from jsonrefs.exceptions import RemoteLoadError
from jsonrefs.fetcher import HttpxFetcher


class FakeFetcher:
    """Serves documents from memory and records every fetched URL.

    Values may be parsed documents (dumped as JSON for ``.json`` URLs and YAML
    otherwise), raw ``str``/``bytes`` content, or an exception to raise.
    ``file://`` URLs not listed are read from disk when ``read_files`` is set.
    """

    def __init__(self, documents: dict[str, Any], read_files: bool = False, delays: dict[str, threading.Event] | None = None):
        self.documents = documents
        self.read_files = read_files
        self.delays = delays or {}
        self.calls: list[str] = []
        self.hooks: list[Any] = []
        self._lock = threading.Lock()

    def __call__(self, url: str, request_hook: Any = None) -> str | bytes:
        with self._lock:
            self.calls.append(url)
            self.hooks.append(request_hook)

        if url in self.delays:
            self.delays[url].wait(timeout=5)

        if url not in self.documents:
            if self.read_files and url.startswith("file:"):
                return HttpxFetcher()(url)
            raise RemoteLoadError(f"HTTP request failed with status 404: {url}", url)

        document = self.documents[url]
        if isinstance(document, Exception):
            raise document
        if isinstance(document, str | bytes):
            return document
        if url.endswith(".json"):
            return json.dumps(document)
        return yaml.safe_dump(document, sort_keys=False)


@pytest.fixture
def fake_fetcher():
    """Factory fixture for in-memory fetchers.

    Usage:
        def test_example(fake_fetcher):
            fetcher = fake_fetcher({"https://example.com/a.yaml": {"name": "a"}})
            result = resolve_refs(document, fetcher=fetcher)
            assert fetcher.calls == ["https://example.com/a.yaml"]
    """

    def _create(documents: dict[str, Any] | None = None, **kwargs: Any) -> FakeFetcher:
        return FakeFetcher(documents or {}, **kwargs)

    return _create


@pytest.fixture
def create_yaml_files(tmp_path: Path):
    """Factory fixture for creating multiple temporary YAML/JSON files at once.

    Usage:
        def test_example(create_yaml_files):
            files = create_yaml_files({
                "main.yaml": {"value": {"$ref": "other.yaml#/value"}},
                "other.yaml": {"value": 42},
            })
            result = resolve_refs_at(files["main.yaml"])
    """

    def _create(files: dict[str, Any]) -> dict[str, Path]:
        result = {}
        for name, content in files.items():
            file = tmp_path / name
            file.parent.mkdir(parents=True, exist_ok=True)
            if name.endswith(".json"):
                file.write_text(json.dumps(content))
            else:
                file.write_text(yaml.safe_dump(content, sort_keys=False))
            result[name] = file
        return result

    return _create
