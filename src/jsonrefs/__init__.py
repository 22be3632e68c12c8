from .constants import CircularPolicy, RefType
from .exceptions import (
    DocumentError,
    InvalidPointerTokenError,
    InvalidReferenceError,
    JsonRefsError,
    PointerError,
    PointerNotFoundError,
    RemoteLoadError,
    ResolutionTimeoutError,
    UnresolvedReferencesError,
)
from .fetcher import HttpxFetcher
from .loader import find_refs, load_document, resolve_refs, resolve_refs_at
from .models import ResolutionOptions, ResolutionResult, ResolvedDocument
from .plumbing.pointer import Pointer, is_ptr, path_from_ptr, path_to_ptr, resolve_pointer
from .plumbing.walker import is_ref

__all__ = [
    "resolve_refs",
    "resolve_refs_at",
    "find_refs",
    "load_document",
    "resolve_pointer",
    "is_ref",
    "is_ptr",
    "path_to_ptr",
    "path_from_ptr",
    "Pointer",
    "HttpxFetcher",
    "ResolutionOptions",
    "ResolutionResult",
    "ResolvedDocument",
    "RefType",
    "CircularPolicy",
    "JsonRefsError",
    "DocumentError",
    "InvalidReferenceError",
    "PointerError",
    "PointerNotFoundError",
    "InvalidPointerTokenError",
    "RemoteLoadError",
    "ResolutionTimeoutError",
    "UnresolvedReferencesError",
]
