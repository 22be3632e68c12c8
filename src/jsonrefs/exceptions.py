"""Exception classes for jsonrefs."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jsonrefs.models import ResolvedDocument


class JsonRefsError(Exception):
    """Base exception for all jsonrefs errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DocumentError(JsonRefsError):
    """The input document is not a walkable JSON/YAML tree."""


class PointerError(JsonRefsError):
    """A JSON pointer could not be evaluated against a document."""

    def __init__(self, message: str, pointer: str = "", prefix: str = ""):
        super().__init__(message)
        self.pointer = pointer
        self.prefix = prefix


class PointerNotFoundError(PointerError):
    """A JSON pointer token has no corresponding child."""


class InvalidPointerTokenError(PointerError):
    """A JSON pointer token is not a valid index for a sequence."""


class RemoteLoadError(JsonRefsError):
    """A remote document could not be fetched or parsed."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class ResolutionTimeoutError(JsonRefsError):
    """The resolution run exceeded its deadline."""


class UnresolvedReferencesError(JsonRefsError):
    """Raised after a full run when strict checks fail.

    The complete report is available on ``result`` so callers can inspect
    which references failed.
    """

    def __init__(self, message: str, result: "ResolvedDocument"):
        super().__init__(message)
        self.result = result


class InvalidReferenceError(UnresolvedReferencesError):
    """Invalid $ref values were found while ``include_invalid`` was off."""
