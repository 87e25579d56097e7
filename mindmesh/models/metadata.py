"""Chunk metadata values and the descriptive metadata produced by enrichment.

Chunk metadata is a JSON-like mapping whose values belong to a closed set
of kinds, described by :class:`MetadataKind`:

    STRING   str
    NUMBER   int | float (never bool)
    BOOLEAN  bool
    LIST     list of metadata values
    MAP      dict[str, metadata value]

Every helper in this module dispatches on :func:`metadata_kind`, which
rejects anything outside that set, so merging and filtering never have
to guess what an arbitrary Python object means.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

MetadataValue = Union[str, int, float, bool, list["MetadataValue"], dict[str, "MetadataValue"]]
Metadata = dict[str, MetadataValue]


class MetadataKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    LIST = "list"
    MAP = "map"


def metadata_kind(value: Any) -> MetadataKind:
    """Classify *value*, raising ``TypeError`` for unsupported types."""
    # bool is a subclass of int, so it must be tested first.
    if isinstance(value, bool):
        return MetadataKind.BOOLEAN
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise TypeError("Metadata numbers must be finite")
        return MetadataKind.NUMBER
    if isinstance(value, str):
        return MetadataKind.STRING
    if isinstance(value, (list, tuple)):
        return MetadataKind.LIST
    if isinstance(value, Mapping):
        return MetadataKind.MAP
    raise TypeError(f"Unsupported metadata value type: {type(value).__name__}")


def normalize_value(value: Any) -> MetadataValue:
    """Return a plain-JSON copy of *value* (tuples become lists)."""
    kind = metadata_kind(value)
    if kind is MetadataKind.LIST:
        return [normalize_value(item) for item in value]
    if kind is MetadataKind.MAP:
        return normalize_metadata(value)
    return value


def normalize_metadata(mapping: Mapping[str, Any] | None) -> Metadata:
    """Validate and copy a metadata mapping; keys must be strings."""
    if mapping is None:
        return {}
    result: Metadata = {}
    for key, value in mapping.items():
        if not isinstance(key, str):
            raise TypeError(f"Metadata keys must be strings, got {type(key).__name__}")
        result[key] = normalize_value(value)
    return result


def merge_metadata(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Metadata:
    """Merge *overlay* onto *base*, returning a new mapping.

    Nested maps present on both sides are merged recursively; for every
    other kind the overlay value replaces the base value.
    """
    merged = normalize_metadata(base)
    for key, value in normalize_metadata(overlay).items():
        current = merged.get(key)
        if (
            current is not None
            and metadata_kind(current) is MetadataKind.MAP
            and metadata_kind(value) is MetadataKind.MAP
        ):
            merged[key] = merge_metadata(current, value)
        else:
            merged[key] = value
    return merged


def metadata_contains(metadata: Mapping[str, Any], criteria: Mapping[str, Any]) -> bool:
    """Return ``True`` if *metadata* is a superset match of *criteria*.

    Containment follows JSON-document semantics:

    * a map contains another map when every key of the latter is present
      and its value is contained;
    * a list contains another list when every element of the latter is
      contained by some element of the former;
    * a list also contains a bare scalar equal to one of its elements;
    * scalars must be equal and of the same kind (``1`` never matches ``True``).
    """
    return _contains(dict(metadata), dict(criteria))


def _contains(actual: Any, expected: Any) -> bool:
    actual_kind = metadata_kind(actual)
    expected_kind = metadata_kind(expected)

    if expected_kind is MetadataKind.MAP:
        if actual_kind is not MetadataKind.MAP:
            return False
        return all(key in actual and _contains(actual[key], value) for key, value in expected.items())

    if expected_kind is MetadataKind.LIST:
        if actual_kind is not MetadataKind.LIST:
            return False
        return all(any(_contains(candidate, item) for candidate in actual) for item in expected)

    if actual_kind is MetadataKind.LIST:
        return any(_contains(candidate, expected) for candidate in actual)

    return actual_kind is expected_kind and actual == expected


# ---------------------------------------------------------------------------
# DocumentMetadata -- the output of the metadata enricher.
# ---------------------------------------------------------------------------
class DocumentMetadata(BaseModel):
    """Descriptive metadata for a whole document, copied onto every chunk."""

    model_config = ConfigDict(frozen=True)

    document_type: str = Field(default="unknown", description="Coarse document category.")
    keywords: list[str] = Field(default_factory=list, description="Salient terms.")
    topics: list[str] = Field(default_factory=list, description="Broader subject areas.")
    summary: str = Field(default="", description="Short abstract of the content.")
    language: str = Field(default="unknown", description="ISO-639-1 code or 'unknown'.")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Enricher confidence.")
    extra: dict[str, Any] = Field(
        default_factory=dict,
        description="Strategy-specific fields such as stats or semantic_hash.",
    )

    @field_validator("extra")
    @classmethod
    def _closed_extra(cls, value: dict[str, Any]) -> dict[str, Any]:
        try:
            return normalize_metadata(value)
        except TypeError as exc:
            raise ValueError(str(exc)) from exc

    def to_metadata(self) -> Metadata:
        """Flatten into a chunk metadata mapping."""
        data: Metadata = {
            "document_type": self.document_type,
            "keywords": list(self.keywords),
            "topics": list(self.topics),
            "summary": self.summary,
            "language": self.language,
            "confidence": self.confidence,
        }
        return merge_metadata(data, self.extra)
