"""Reference resolution for JSON and YAML documents.

The resolver runs in three steps:

1. Walk the document (or the ``sub_doc_path`` subtree) and classify every
   reference node, in depth-first pre-order.
2. Start fetching every distinct remote document the references need, so
   slow fetches overlap. The document itself is cached under the base
   location, so references back to it by URL reuse it without a fetch.
3. Resolve the references one by one in discovery order. A resolved value
   has its own references resolved in turn, within the document it came
   from, so the output is reference-free except where a cycle or an error
   stops resolution.

Results are recorded in discovery order no matter when fetches complete,
which keeps the report deterministic.
"""

import copy
import logging
import time
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urlsplit

from jsonrefs.constants import CIRCULAR_KEY, REF_KEY, REMOTE_TYPES, CircularPolicy, RefType
from jsonrefs.exceptions import DocumentError, InvalidReferenceError, PointerError, PointerNotFoundError, RemoteLoadError, UnresolvedReferencesError
from jsonrefs.fetcher import HttpxFetcher
from jsonrefs.models import ResolutionOptions, ResolutionResult, ResolvedDocument
from jsonrefs.plumbing.circular import CircularReferenceTracker
from jsonrefs.plumbing.path import PathValidator
from jsonrefs.plumbing.pointer import ROOT, Pointer, resolve_pointer
from jsonrefs.plumbing.reference import Reference
from jsonrefs.plumbing.remote import RemoteCache, to_base_url
from jsonrefs.plumbing.walker import is_ref, walk
from jsonrefs.settings import JsonRefsSettings

logger = logging.getLogger(__name__)


class ReferenceResolver:
    """Resolves JSON references ($ref) in documents.

    A resolver holds configuration only. Each ``resolve`` call builds its own
    remote cache and circularity tracker, so calls never share state.
    """

    def __init__(self, options: ResolutionOptions | None = None, settings: JsonRefsSettings | None = None):
        self.options = options or ResolutionOptions()
        self.settings = settings or JsonRefsSettings()
        self.base_url = to_base_url(self.options.location)
        self.fetcher = self.options.fetcher or HttpxFetcher(self.settings)

    def find_refs(self, document: Any) -> dict[str, Reference]:
        """Walk the document and classify every reference node.

        Returns:
            References keyed by location string, in discovery order

        Raises:
            DocumentError: If the document cannot be walked or ``sub_doc_path`` does not exist in it
        """
        start = Pointer.parse(self.options.sub_doc_path)
        try:
            subdocument = resolve_pointer(document, start)
        except PointerError as e:
            raise DocumentError(f"Cannot resolve sub document path {start}: {e.message}") from None

        refs: dict[str, Reference] = {}
        for pointer, node in walk(subdocument, start):
            if not is_ref(node):
                continue

            if self.options.ref_pre_processor is not None:
                node = self.options.ref_pre_processor(node, pointer)
                if not is_ref(node):
                    continue

            refs[str(pointer)] = Reference.from_node(node, pointer, self.base_url)

        return refs

    def resolve(self, document: Any) -> ResolvedDocument:
        """Resolve all references in a document.

        Args:
            document: Parsed JSON/YAML tree; it is never modified

        Returns:
            The dereferenced copy of the document and the per-reference report

        Raises:
            DocumentError: If the document cannot be walked
            ResolutionTimeoutError: If the run exceeds ``options.timeout``
            InvalidReferenceError: With ``include_invalid=False``, after the report is built
            UnresolvedReferencesError: In strict mode, after the report is built
        """
        refs = self.find_refs(document)
        logger.debug(f"Found {len(refs)} reference(s) in {self.base_url}")

        deadline = time.monotonic() + self.options.timeout if self.options.timeout else None
        max_concurrency = self.options.max_concurrency or self.settings.max_concurrency
        tracker = CircularReferenceTracker()
        results: dict[str, ResolutionResult] = {}

        with RemoteCache(self.fetcher, self.options.request_hook, max_concurrency, deadline) as cache:
            cache.seed(self.base_url, document)
            cache.prefetch(self._prefetch_urls(refs.values()))

            for key, ref in refs.items():
                result = self._resolve_reference(ref, self.base_url, document, tracker, cache)
                if self.options.ref_post_processor is not None:
                    result = self.options.ref_post_processor(result, ref.location)
                results[key] = result

            logger.info(f"Resolved {len(results)} reference(s) from {self.base_url}: {cache.fetches} remote fetch(es), {cache.hits} cache hit(s)")

        resolved = ResolvedDocument(resolved=self._splice(document, ROOT, results), refs=results)
        self._check(resolved)
        return resolved

    def _prefetch_urls(self, refs: Iterable[Reference]) -> list[str]:
        urls = []
        for ref in refs:
            if ref.type not in REMOTE_TYPES or ref.type not in self.options.filter:
                continue
            try:
                self._check_access(ref)
            except RemoteLoadError:
                continue
            urls.append(ref.url)
        return urls

    def _check_access(self, ref: Reference) -> None:
        if self.options.root_path is None or urlsplit(ref.url).scheme != "file":
            return

        max_depth = self.options.max_parent_traversal_depth
        if max_depth is None:
            max_depth = self.settings.max_parent_traversal_depth
        PathValidator.validate_file_url(ref.url, ref.raw, self.options.root_path, max_depth)

    def _resolve_reference(
        self,
        ref: Reference,
        document_url: str,
        document: Any,
        tracker: CircularReferenceTracker,
        cache: RemoteCache,
    ) -> ResolutionResult:
        """Resolve a single reference found in ``document``.

        Args:
            ref: The classified reference
            document_url: URL identifying the document that contains the reference
            document: The document that contains the reference
            tracker: Circularity tracker for this run
            cache: Remote cache for this run

        Returns:
            The result; recoverable failures are recorded in ``error``

        Raises:
            ResolutionTimeoutError: If the run deadline has passed
        """
        cache.check_deadline()
        result = ResolutionResult(
            type=ref.type,
            uri=ref.raw,
            fq_uri=ref.fq_uri,
            definition=ref.definition,
            error=ref.error,
            warning=ref.warning,
        )

        if not ref.resolvable:
            logger.warning(f"Skipping {ref.type} reference at {ref.location}: {ref.error}")
            return result

        if ref.type not in self.options.filter:
            result.filtered = True
            return result

        target_url = ref.url if ref.type in REMOTE_TYPES else document_url
        result.parent = target_url

        with tracker.following(document_url, ref.location):
            if tracker.is_circular(target_url, ref.pointer):
                logger.debug(f"Circular reference at {ref.location} to {ref.fq_uri}")
                result.circular = True
                result.value = self._placeholder(ref)
                return result

            try:
                if ref.type in REMOTE_TYPES:
                    self._check_access(ref)
                    target_document = cache.load(target_url)
                else:
                    target_document = document
                value = resolve_pointer(target_document, ref.pointer)
            except PointerNotFoundError as e:
                logger.warning(f"Cannot resolve reference at {ref.location}: {e.message}")
                result.error = e.message
                result.missing = True
                return result
            except (PointerError, RemoteLoadError) as e:
                logger.warning(f"Cannot resolve reference at {ref.location}: {e.message}")
                result.error = e.message
                return result

            result.value = self._resolve_value(value, ref.pointer, target_url, target_document, tracker, cache, result)

        return result

    def _resolve_value(
        self,
        node: Any,
        pointer: Pointer,
        document_url: str,
        document: Any,
        tracker: CircularReferenceTracker,
        cache: RemoteCache,
        owner: ResolutionResult,
    ) -> Any:
        """Copy a resolved value, resolving the references it contains.

        Nested cycles mark ``owner`` circular; nested failures leave the
        nested reference node in place and are reported in ``owner.warning``.
        """
        match node:
            case Mapping() if is_ref(node):
                nested = self._resolve_reference(Reference.from_node(node, pointer, document_url), document_url, document, tracker, cache)
                if nested.circular:
                    owner.circular = True
                if nested.error is not None:
                    self._add_warning(owner, f"Nested reference at {pointer} could not be resolved: {nested.error}")
                if nested.resolved:
                    return nested.value
                return copy.deepcopy(dict(node))

            case Mapping():
                return {key: self._resolve_value(value, pointer.child(key), document_url, document, tracker, cache, owner) for key, value in node.items()}

            case list() | tuple():
                return [self._resolve_value(item, pointer.child(index), document_url, document, tracker, cache, owner) for index, item in enumerate(node)]

            case _:
                return copy.deepcopy(node)

    def _placeholder(self, ref: Reference) -> dict[str, str]:
        match self.options.circular_policy:
            case CircularPolicy.MARKER:
                return {CIRCULAR_KEY: ref.fq_uri}
            case _:
                return {REF_KEY: ref.raw}

    @staticmethod
    def _add_warning(result: ResolutionResult, message: str) -> None:
        result.warning = f"{result.warning}; {message}" if result.warning else message

    def _splice(self, node: Any, pointer: Pointer, results: dict[str, ResolutionResult]) -> Any:
        """Copy the document, replacing each resolved reference with its value."""
        result = results.get(str(pointer))
        if result is not None and result.resolved:
            return copy.deepcopy(result.value)

        match node:
            case Mapping() if is_ref(node):
                return copy.deepcopy(dict(node))
            case Mapping():
                return {key: self._splice(value, pointer.child(key), results) for key, value in node.items()}
            case list() | tuple():
                return [self._splice(item, pointer.child(index), results) for index, item in enumerate(node)]
            case _:
                return copy.deepcopy(node)

    def _check(self, resolved: ResolvedDocument) -> None:
        if not self.options.include_invalid:
            invalid = [key for key, result in resolved.refs.items() if result.type in (RefType.INVALID, RefType.UNKNOWN)]
            if invalid:
                raise InvalidReferenceError(f"{len(invalid)} invalid reference(s): {', '.join(invalid)}", resolved)

        if self.options.strict:
            failed = list(resolved.errors())
            if failed:
                raise UnresolvedReferencesError(f"{len(failed)} reference(s) could not be resolved: {', '.join(failed)}", resolved)
