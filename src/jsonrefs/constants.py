from enum import StrEnum


class RefType(StrEnum):
    """Classification of a JSON Reference."""

    LOCAL = "local"
    RELATIVE = "relative"
    ABSOLUTE = "absolute"
    INVALID = "invalid"
    UNKNOWN = "unknown"


class CircularPolicy(StrEnum):
    """What to put in place of a reference cut short by a cycle."""

    REFERENCE = "reference"
    MARKER = "marker"


REF_KEY = "$ref"
CIRCULAR_KEY = "$circular"

RESOLVABLE_TYPES = frozenset({RefType.LOCAL, RefType.RELATIVE, RefType.ABSOLUTE})
REMOTE_TYPES = frozenset({RefType.RELATIVE, RefType.ABSOLUTE})
