"""JSON Reference parsing and classification."""

import copy
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote, urljoin, urlsplit

from jsonrefs.constants import REF_KEY, RESOLVABLE_TYPES, RefType
from jsonrefs.exceptions import PointerError
from jsonrefs.plumbing.pointer import ROOT, Pointer
from jsonrefs.plumbing.remote import normalize_url, to_base_url

# Regex pattern for splitting $ref values into the document part and the fragment
REF_PATTERN = re.compile(r"^(?P<document>[^#]*)(?:#(?P<fragment>.*))?$", re.DOTALL)

INVALID_URI_CHARACTERS = re.compile(r"[\x00-\x20\x7f]")


@dataclass
class Reference:
    """A typed JSON Reference found at ``location``."""

    location: Pointer
    raw: str
    type: RefType
    url: str | None = None
    pointer: Pointer = ROOT
    fq_uri: str = ""
    error: str | None = None
    warning: str | None = None
    definition: dict[str, Any] = field(default_factory=dict)

    @property
    def resolvable(self) -> bool:
        return self.type in RESOLVABLE_TYPES

    @classmethod
    def from_node(cls, node: Mapping[str, Any], location: Pointer = ROOT, base_url: str | None = None) -> "Reference":
        """Build a Reference from a node holding ``$ref``.

        Sibling keys are ignored; their presence is reported as a warning.
        """
        reference = classify(node[REF_KEY], location, base_url)
        reference.definition = copy.deepcopy(dict(node))

        extra = [str(key) for key in node if key != REF_KEY]
        if extra:
            reference.warning = f"Extra JSON Reference properties will be ignored: {', '.join(extra)}"

        return reference


def _check_syntax(raw: str, document: str) -> str | None:
    if INVALID_URI_CHARACTERS.search(raw):
        return f"URI contains whitespace or control characters: {raw!r}"

    try:
        parts = urlsplit(document)
        # Accessing the port validates it
        parts.port
    except ValueError as e:
        return f"Invalid URI '{raw}': {e}"

    if parts.scheme in ("http", "https") and not parts.hostname:
        return "HTTP URIs must have a host."

    if parts.netloc and not parts.hostname and parts.scheme != "file":
        return f"URI authority must include a host: {raw}"

    return None


def classify(raw: str, location: Pointer = ROOT, base_url: str | None = None) -> Reference:
    """Classify a ``$ref`` value.

    Never raises: syntax problems produce an ``invalid`` Reference carrying
    the error so the walk can continue past it.

    Args:
        raw: The ``$ref`` string
        location: Pointer of the node holding the reference
        base_url: URL relative references resolve against (defaults to the cwd)

    Returns:
        The classified Reference
    """
    base_url = base_url or to_base_url(None)
    match = REF_PATTERN.match(raw)
    document = match.group("document")
    fragment = match.group("fragment")

    error = _check_syntax(raw, document)
    if error is not None:
        return Reference(location=location, raw=raw, type=RefType.INVALID, fq_uri=raw, error=error)

    try:
        pointer = Pointer.parse(unquote(fragment or ""))
    except PointerError as e:
        return Reference(location=location, raw=raw, type=RefType.INVALID, fq_uri=raw, error=e.message)

    parts = urlsplit(document)
    if not document:
        ref_type = RefType.LOCAL
        url = base_url
    elif not parts.scheme:
        ref_type = RefType.RELATIVE
        url = normalize_url(urljoin(base_url, document))
    elif parts.netloc or parts.scheme.lower() == "file":
        ref_type = RefType.ABSOLUTE
        url = normalize_url(document)
    else:
        return Reference(location=location, raw=raw, type=RefType.UNKNOWN, fq_uri=raw, error=f"Unsupported reference scheme '{parts.scheme}': {raw}")

    return Reference(location=location, raw=raw, type=ref_type, url=url, pointer=pointer, fq_uri=f"{url}{pointer}")
