from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, NonNegativeInt, PositiveFloat, PositiveInt

from jsonrefs.constants import RESOLVABLE_TYPES, CircularPolicy, RefType
from jsonrefs.fetcher import Fetcher, RequestHook
from jsonrefs.plumbing.pointer import Pointer, is_ptr


@dataclass
class ResolutionResult:
    """Outcome of resolving one reference."""

    type: RefType
    uri: str
    fq_uri: str
    definition: dict[str, Any]
    value: Any = None
    error: str | None = None
    warning: str | None = None
    missing: bool = False
    circular: bool = False
    filtered: bool = False
    parent: str | None = None

    @property
    def resolved(self) -> bool:
        """True when ``value`` replaces the reference in the output document."""
        return self.error is None and not self.filtered and self.type in RESOLVABLE_TYPES


@dataclass
class ResolvedDocument:
    """A dereferenced document with the per-reference report.

    ``refs`` is keyed by the string form of each reference location, in
    discovery order.
    """

    resolved: Any
    refs: dict[str, ResolutionResult] = field(default_factory=dict)

    def errors(self) -> dict[str, ResolutionResult]:
        return {key: result for key, result in self.refs.items() if result.error is not None}

    def circulars(self) -> dict[str, ResolutionResult]:
        return {key: result for key, result in self.refs.items() if result.circular}


def validate_json_pointer(v: str) -> str:
    if not is_ptr(v):
        raise ValueError(f"Invalid JSON pointer: {v!r}")
    return v


def validate_ref_filter(v: frozenset[RefType]) -> frozenset[RefType]:
    unresolvable = v - RESOLVABLE_TYPES
    if unresolvable:
        names = ", ".join(sorted(unresolvable))
        raise ValueError(f"Only resolvable reference types can be filtered, got: {names} (use include_invalid instead)")
    return v


JsonPointerStr = Annotated[str, AfterValidator(validate_json_pointer)]
RefFilter = Annotated[frozenset[RefType], AfterValidator(validate_ref_filter)]


class ResolutionOptions(BaseModel):
    location: str | Path | None = Field(
        default=None,
        description="Where relative references resolve from: a URL or a filesystem path. Defaults to the current directory.",
        examples=["https://example.com/specs/api.yaml", "./specs/api.yaml"],
    )
    filter: RefFilter = Field(
        default=RESOLVABLE_TYPES,
        description="Reference types to resolve. References of other types are reported and left in place.",
        examples=[["local"], ["local", "relative"]],
    )
    include_invalid: bool = Field(
        default=True,
        description="Keep invalid references unresolved in the output. When false, any invalid reference fails the run after the report is built.",
    )
    strict: bool = Field(default=False, description="Fail the run after the report is built if any reference has an error.")
    circular_policy: CircularPolicy = Field(default=CircularPolicy.REFERENCE, description="Placeholder used where a cycle cuts resolution short.")
    sub_doc_path: JsonPointerStr = Field(default="", description="JSON pointer of the subtree whose references are resolved.", examples=["#/paths"])
    request_hook: RequestHook | None = Field(default=None, description="Called with every outgoing httpx.Request, e.g. to add headers.")
    fetcher: Fetcher | None = Field(default=None, description="Callable returning raw content for a URL. Defaults to HttpxFetcher.")
    timeout: PositiveFloat | None = Field(default=None, description="Deadline in seconds for the run, checked before each reference is resolved and while waiting on remote fetches.")
    max_concurrency: PositiveInt | None = Field(default=None, description="Maximum concurrent remote fetches. Defaults to the settings value.")
    root_path: Path | None = Field(default=None, description="Directory that file references must stay within.")
    max_parent_traversal_depth: NonNegativeInt | None = Field(default=None, description="Maximum leading '..' segments in file references when root_path is set.")
    ref_pre_processor: Callable[[dict[str, Any], Pointer], dict[str, Any]] | None = Field(
        default=None,
        description="Called with each reference node and its location before classification; returns the node to use.",
    )
    ref_post_processor: Callable[[ResolutionResult, Pointer], ResolutionResult] | None = Field(
        default=None,
        description="Called with each top-level result and its location before it is recorded; returns the result to record.",
    )

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True, frozen=True)
