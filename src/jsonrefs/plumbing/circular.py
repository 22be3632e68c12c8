"""Circular reference detection."""

from collections.abc import Iterator
from contextlib import contextmanager

from jsonrefs.plumbing.pointer import Pointer


class CircularReferenceTracker:
    """Tracks the chain of references currently being followed.

    Each entry is the document URL and pointer of a reference whose target is
    being resolved. A target is circular when it is equal to, or an ancestor
    of, any location in progress within the same document.
    """

    def __init__(self):
        self._stack: list[tuple[str, Pointer]] = []

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def entries(self) -> tuple[tuple[str, Pointer], ...]:
        return tuple(self._stack)

    def is_circular(self, document_url: str, target: Pointer) -> bool:
        return any(url == document_url and target.is_prefix_of(location) for url, location in self._stack)

    def push(self, document_url: str, location: Pointer) -> None:
        self._stack.append((document_url, location))

    def pop(self) -> tuple[str, Pointer]:
        return self._stack.pop()

    @contextmanager
    def following(self, document_url: str, location: Pointer) -> Iterator[None]:
        """Keep ``location`` on the stack for the duration of the block."""
        self.push(document_url, location)
        try:
            yield
        finally:
            self.pop()
