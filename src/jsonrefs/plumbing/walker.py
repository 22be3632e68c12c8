"""Depth-first traversal of JSON/YAML document trees."""

import datetime
from collections.abc import Iterator, Mapping
from typing import Any

from jsonrefs.constants import REF_KEY
from jsonrefs.exceptions import DocumentError
from jsonrefs.plumbing.pointer import ROOT, Pointer


def is_ref(node: Any) -> bool:
    """Check whether a node has the JSON Reference shape: a mapping with a string ``$ref``."""
    return isinstance(node, Mapping) and isinstance(node.get(REF_KEY), str)


def walk(document: Any, pointer: Pointer = ROOT) -> Iterator[tuple[Pointer, Any]]:
    """Yield every node of a document with its pointer, depth-first and pre-order.

    Mapping children are visited in insertion order and sequence children in
    index order. A reference node is yielded but never descended into, so its
    sibling keys are not visited.

    Args:
        document: Root of the tree to traverse
        pointer: Pointer of ``document`` within its own root

    Raises:
        DocumentError: If a node is not a JSON/YAML value or a container contains itself
    """
    yield from _walk(document, pointer, ())


def _walk(node: Any, pointer: Pointer, ancestors: tuple[int, ...]) -> Iterator[tuple[Pointer, Any]]:
    match node:
        case None | bool() | int() | float() | str() | datetime.date():
            yield pointer, node

        case Mapping() if is_ref(node):
            yield pointer, node

        case Mapping():
            if id(node) in ancestors:
                raise DocumentError(f"Document contains itself at {pointer}")
            yield pointer, node
            for key, value in node.items():
                yield from _walk(value, pointer.child(key), ancestors + (id(node),))

        case list() | tuple():
            if id(node) in ancestors:
                raise DocumentError(f"Document contains itself at {pointer}")
            yield pointer, node
            for index, item in enumerate(node):
                yield from _walk(item, pointer.child(index), ancestors + (id(node),))

        case _:
            raise DocumentError(f"Unsupported node type {type(node).__name__} at {pointer}")
