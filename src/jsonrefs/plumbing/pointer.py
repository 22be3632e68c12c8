"""JSON pointer parsing and evaluation (RFC 6901)."""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from functools import total_ordering
from typing import Any

from jsonrefs.exceptions import InvalidPointerTokenError, PointerError, PointerNotFoundError

# Array indexes are "0" or digits without a leading zero; "-" never resolves
ARRAY_INDEX_PATTERN = re.compile(r"^(0|[1-9][0-9]*)$")


def escape_token(token: str | int) -> str:
    return str(token).replace("~", "~0").replace("/", "~1")


def unescape_token(token: str) -> str:
    # ~1 first, so "~01" decodes to "~1" and not "/"
    return token.replace("~1", "/").replace("~0", "~")


@total_ordering
@dataclass(frozen=True)
class Pointer:
    """A path from a document root, stored as unescaped string tokens.

    Pointers compare equal by tokens and sort by their rendered string form,
    which gives the report a stable order.
    """

    tokens: tuple[str, ...] = ()

    @classmethod
    def parse(cls, pointer: str) -> "Pointer":
        """Parse ``"#/a/b"``, ``"/a/b"``, ``"#"`` or ``""`` into a Pointer.

        Raises:
            PointerError: If the pointer is neither empty nor starts with '/'
        """
        if pointer.startswith("#"):
            pointer = pointer[1:]

        if not pointer:
            return cls()

        if not pointer.startswith("/"):
            raise PointerError(f"Invalid JSON pointer: {pointer} (must start with '/')", pointer=pointer)

        return cls(tuple(unescape_token(part) for part in pointer[1:].split("/")))

    @classmethod
    def from_tokens(cls, tokens: Iterable[str | int]) -> "Pointer":
        return cls(tuple(str(token) for token in tokens))

    def child(self, token: str | int) -> "Pointer":
        return Pointer(self.tokens + (str(token),))

    @property
    def parent(self) -> "Pointer | None":
        if not self.tokens:
            return None
        return Pointer(self.tokens[:-1])

    @property
    def is_root(self) -> bool:
        return not self.tokens

    def is_prefix_of(self, other: "Pointer") -> bool:
        """True when ``other`` equals this pointer or lies beneath it."""
        return other.tokens[: len(self.tokens)] == self.tokens

    def to_json_pointer(self) -> str:
        """Render without the leading '#', e.g. ``/a/b`` (root is ``""``)."""
        return "".join(f"/{escape_token(token)}" for token in self.tokens)

    def __str__(self) -> str:
        return f"#{self.to_json_pointer()}"

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Pointer):
            return NotImplemented
        return str(self) < str(other)


ROOT = Pointer()


def _lookup_key(mapping: Mapping[Any, Any], token: str) -> Any:
    if token in mapping:
        return mapping[token]

    # YAML can produce non-string keys such as `200:`; match on their string form
    for key, value in mapping.items():
        if not isinstance(key, str) and str(key) == token:
            return value

    raise KeyError(token)


def resolve_pointer(document: Any, pointer: Pointer | str) -> Any:
    """Evaluate a JSON pointer against a document.

    Args:
        document: Root of the tree to navigate
        pointer: Pointer object or string form (``"#/a/0"`` or ``"/a/0"``)

    Returns:
        The value at the pointer location (the root for an empty pointer)

    Raises:
        PointerNotFoundError: If a token has no corresponding child
        InvalidPointerTokenError: If a token is not a valid index for a sequence
    """
    if isinstance(pointer, str):
        pointer = Pointer.parse(pointer)

    current = document
    for depth, token in enumerate(pointer.tokens):
        prefix = str(Pointer(pointer.tokens[:depth]))

        match current:
            case Mapping():
                try:
                    current = _lookup_key(current, token)
                except KeyError:
                    raise PointerNotFoundError(f"JSON Pointer points to missing location: {pointer} (no key '{token}' at {prefix})", str(pointer), prefix) from None
            case list() | tuple():
                if not ARRAY_INDEX_PATTERN.match(token):
                    raise InvalidPointerTokenError(f"Invalid array index '{token}' in JSON Pointer {pointer} at {prefix}", str(pointer), prefix)
                index = int(token)
                if index >= len(current):
                    raise PointerNotFoundError(f"JSON Pointer points to missing location: {pointer} (index {index} out of range at {prefix})", str(pointer), prefix)
                current = current[index]
            case _:
                raise PointerNotFoundError(f"JSON Pointer points to missing location: {pointer} (cannot descend into {type(current).__name__} at {prefix})", str(pointer), prefix)

    return current


def is_ptr(value: Any) -> bool:
    """Check whether ``value`` is a JSON pointer string, with or without a leading '#'."""
    if not isinstance(value, str):
        return False

    try:
        Pointer.parse(value)
    except PointerError:
        return False
    return True


def encode_path(path: Iterable[str | int]) -> list[str]:
    return [escape_token(token) for token in path]


def decode_path(path: Iterable[str]) -> list[str]:
    return [unescape_token(token) for token in path]


def path_to_ptr(path: Iterable[str | int], hash_prefix: bool = True) -> str:
    """Build a pointer string from path tokens, e.g. ``["a", 0]`` -> ``#/a/0``."""
    pointer = Pointer.from_tokens(path)
    return str(pointer) if hash_prefix else pointer.to_json_pointer()


def path_from_ptr(ptr: str) -> list[str]:
    """Split a pointer string into unescaped path tokens."""
    return list(Pointer.parse(ptr).tokens)
