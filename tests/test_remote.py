import threading
import time
from pathlib import Path

import pytest
from jsonrefs.exceptions import RemoteLoadError, ResolutionTimeoutError
from jsonrefs.plumbing.remote import RemoteCache, normalize_url, parse_document, to_base_url

URL = "https://example.com/specs/common.yaml"


class TestNormalizeUrl:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("HTTP://Example.COM:80/a/./b/../c.yaml#frag", "http://example.com/a/c.yaml"),
            ("https://example.com:443/doc.json", "https://example.com/doc.json"),
            ("https://example.com:8443/doc.json", "https://example.com:8443/doc.json"),
            ("https://example.com/dir/", "https://example.com/dir/"),
            ("https://example.com/doc.yaml?version=2", "https://example.com/doc.yaml?version=2"),
            ("https://user@Example.com/doc.yaml", "https://user@example.com/doc.yaml"),
            ("file:///tmp/../tmp/a.yaml", "file:///tmp/a.yaml"),
        ],
    )
    def test_normalize(self, url, expected):
        assert normalize_url(url) == expected


class TestToBaseUrl:
    def test_none_is_current_directory(self):
        assert to_base_url(None) == Path.cwd().as_uri() + "/"

    def test_directory_gets_trailing_slash(self, tmp_path):
        assert to_base_url(tmp_path) == tmp_path.resolve().as_uri() + "/"

    def test_file_path(self, tmp_path):
        file = tmp_path / "doc.yaml"
        file.write_text("a: 1")
        assert to_base_url(str(file)) == file.resolve().as_uri()

    def test_url_is_normalized(self):
        assert to_base_url("https://Example.com/specs/./api.yaml") == "https://example.com/specs/api.yaml"


class TestParseDocument:
    def test_yaml(self):
        assert parse_document("a: 1\nb: [x, y]\n", URL) == {"a": 1, "b": ["x", "y"]}

    def test_json_by_extension(self):
        assert parse_document(b'{"a": 1}', "https://example.com/doc.json") == {"a": 1}

    def test_json_content_parses_as_yaml(self):
        assert parse_document('{"a": [1, 2]}', URL) == {"a": [1, 2]}

    def test_invalid_yaml(self):
        with pytest.raises(RemoteLoadError, match="Failed to parse document") as exc_info:
            parse_document("a: [", URL)
        assert exc_info.value.url == URL

    def test_invalid_json(self):
        with pytest.raises(RemoteLoadError, match="Failed to parse document"):
            parse_document("{'a': 1}", "https://example.com/doc.json")

    def test_undecodable_bytes(self):
        with pytest.raises(RemoteLoadError, match="Failed to decode document"):
            parse_document(b"\xff\xfe\xfa", URL)


class TestRemoteCache:
    """Tests for per-run remote document caching."""

    def test_document_is_fetched_once(self, fake_fetcher):
        fetcher = fake_fetcher({URL: {"a": 1}})
        with RemoteCache(fetcher) as cache:
            first = cache.load(URL)
            second = cache.load("https://EXAMPLE.com/specs/./common.yaml#/a")

        assert first == {"a": 1}
        assert first is second
        assert fetcher.calls == [URL]
        assert cache.fetches == 1
        assert cache.hits == 1

    def test_prefetch_deduplicates(self, fake_fetcher):
        other = "https://example.com/specs/other.yaml"
        fetcher = fake_fetcher({URL: {"a": 1}, other: {"b": 2}})
        with RemoteCache(fetcher) as cache:
            cache.prefetch([URL, other, URL])
            assert cache.load(other) == {"b": 2}

        assert sorted(fetcher.calls) == [URL, other]
        assert cache.fetches == 2

    def test_concurrent_waiters_share_one_fetch(self, fake_fetcher):
        """Threads asking for the same URL while it is in flight all get the same document."""
        release = threading.Event()
        fetcher = fake_fetcher({URL: {"a": 1}}, delays={URL: release})
        documents = []

        with RemoteCache(fetcher) as cache:
            threads = [threading.Thread(target=lambda: documents.append(cache.load(URL))) for _ in range(4)]
            for thread in threads:
                thread.start()
            release.set()
            for thread in threads:
                thread.join(timeout=5)

        assert len(documents) == 4
        assert all(document is documents[0] for document in documents)
        assert fetcher.calls == [URL]

    def test_failure_is_shared(self, fake_fetcher):
        fetcher = fake_fetcher({URL: RemoteLoadError(f"HTTP request failed with status 500: {URL}", URL)})
        messages = []
        with RemoteCache(fetcher) as cache:
            for _ in range(2):
                with pytest.raises(RemoteLoadError) as exc_info:
                    cache.load(URL)
                messages.append(exc_info.value.message)

        assert messages == [f"HTTP request failed with status 500: {URL}"] * 2
        assert fetcher.calls == [URL]

    def test_unexpected_fetcher_errors_are_wrapped(self, fake_fetcher):
        fetcher = fake_fetcher({URL: ConnectionResetError("connection reset")})
        with RemoteCache(fetcher) as cache:
            with pytest.raises(RemoteLoadError, match=f"Failed to load remote document {URL}: connection reset"):
                cache.load(URL)

    def test_unknown_document_fails(self, fake_fetcher):
        with RemoteCache(fake_fetcher()) as cache:
            with pytest.raises(RemoteLoadError, match="status 404"):
                cache.load(URL)

    def test_request_hook_is_passed_to_fetcher(self, fake_fetcher):
        def hook(request):
            request.headers["Authorization"] = "Bearer token"

        fetcher = fake_fetcher({URL: {"a": 1}})
        with RemoteCache(fetcher, request_hook=hook) as cache:
            cache.load(URL)

        assert fetcher.hooks == [hook]

    def test_deadline_raises_timeout(self, fake_fetcher):
        release = threading.Event()
        fetcher = fake_fetcher({URL: {"a": 1}}, delays={URL: release})
        try:
            with RemoteCache(fetcher, deadline=time.monotonic() + 0.05) as cache:
                with pytest.raises(ResolutionTimeoutError, match=f"Timed out waiting for remote document {URL}"):
                    cache.load(URL)
        finally:
            release.set()

    def test_no_threads_without_remote_documents(self, fake_fetcher):
        with RemoteCache(fake_fetcher()) as cache:
            assert cache._executor is None

    def test_prefetch_then_load_is_not_a_hit(self, fake_fetcher):
        fetcher = fake_fetcher({URL: {"a": 1}})
        with RemoteCache(fetcher) as cache:
            cache.prefetch([URL])
            cache.load(URL)
            assert (cache.fetches, cache.hits) == (1, 0)
            cache.load(URL)
            assert (cache.fetches, cache.hits) == (1, 1)

    def test_seeded_document_is_never_fetched(self, fake_fetcher):
        document = {"a": 1}
        fetcher = fake_fetcher({URL: {"a": 2}})
        with RemoteCache(fetcher) as cache:
            cache.seed(URL, document)
            cache.prefetch([URL])
            assert cache.load(f"{URL}#/a") is document

        assert fetcher.calls == []
        assert cache.fetches == 0
        assert cache.hits == 1

    def test_self_containing_document_is_a_load_error(self, fake_fetcher):
        """A YAML alias that nests a node inside itself is rejected"""
        fetcher = fake_fetcher({URL: "a: &x\n  - *x\nb: 1\n"})
        with RemoteCache(fetcher) as cache:
            with pytest.raises(RemoteLoadError, match=f"Invalid document {URL}: Document contains itself") as exc_info:
                cache.load(URL)
        assert exc_info.value.url == URL

    def test_check_deadline(self, fake_fetcher):
        RemoteCache(fake_fetcher()).check_deadline()
        RemoteCache(fake_fetcher(), deadline=time.monotonic() + 60).check_deadline()
        with pytest.raises(ResolutionTimeoutError, match="Timed out resolving references"):
            RemoteCache(fake_fetcher(), deadline=time.monotonic() - 1).check_deadline()
