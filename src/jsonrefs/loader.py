"""Public entry points: load documents and resolve their references."""

import logging
from pathlib import Path
from typing import Any

from jsonrefs.constants import RefType
from jsonrefs.fetcher import Fetcher, HttpxFetcher, RequestHook
from jsonrefs.models import ResolutionOptions, ResolvedDocument
from jsonrefs.plumbing.reference import Reference
from jsonrefs.plumbing.remote import parse_document, to_base_url
from jsonrefs.resolver import ReferenceResolver

logger = logging.getLogger(__name__)


def _build_options(options: ResolutionOptions | None, overrides: dict[str, Any]) -> ResolutionOptions:
    if options is None:
        return ResolutionOptions(**overrides)
    if not overrides:
        return options
    return ResolutionOptions.model_validate({**dict(options), **overrides})


def load_document(location: str | Path, fetcher: Fetcher | None = None, request_hook: RequestHook | None = None) -> Any:
    """Load and parse a JSON or YAML document from a URL or a filesystem path.

    Raises:
        RemoteLoadError: If the document cannot be fetched or parsed
    """
    url = to_base_url(location)
    fetcher = fetcher or HttpxFetcher()
    logger.info(f"Loading document {url}")
    return parse_document(fetcher(url, request_hook), url)


def find_refs(document: Any, options: ResolutionOptions | None = None, **overrides: Any) -> dict[str, Reference]:
    """Find and classify the references in a document without resolving them.

    References whose type is excluded by ``filter`` are omitted, as are invalid
    references unless ``include_invalid`` is set.

    Returns:
        References keyed by location string, in discovery order
    """
    options = _build_options(options, overrides)
    refs = ReferenceResolver(options).find_refs(document)

    def keep(ref: Reference) -> bool:
        if ref.type in (RefType.INVALID, RefType.UNKNOWN):
            return options.include_invalid
        return ref.type in options.filter

    return {key: ref for key, ref in refs.items() if keep(ref)}


def resolve_refs(document: Any, options: ResolutionOptions | None = None, **overrides: Any) -> ResolvedDocument:
    """Resolve all references in an already parsed document.

    Args:
        document: Parsed JSON/YAML tree; it is never modified
        options: Resolution options
        **overrides: Individual option values, applied on top of ``options``

    Returns:
        The dereferenced copy of the document and the per-reference report

    Raises:
        DocumentError: If the document cannot be walked
        ResolutionTimeoutError: If the run exceeds its timeout
        UnresolvedReferencesError: If strict checks fail after the report is built
    """
    options = _build_options(options, overrides)
    return ReferenceResolver(options).resolve(document)


def resolve_refs_at(location: str | Path, options: ResolutionOptions | None = None, **overrides: Any) -> ResolvedDocument:
    """Load a document from a URL or path and resolve its references.

    The document location becomes the base location for relative references.

    Raises:
        RemoteLoadError: If the document itself cannot be loaded
        DocumentError: If the document cannot be walked
        ResolutionTimeoutError: If the run exceeds its timeout
        UnresolvedReferencesError: If strict checks fail after the report is built
    """
    options = _build_options(options, {**overrides, "location": location})
    resolver = ReferenceResolver(options)
    document = load_document(resolver.base_url, resolver.fetcher, options.request_hook)
    return resolver.resolve(document)
