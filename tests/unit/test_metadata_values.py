"""Unit tests for chunk metadata values — kinds, merging and containment."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mindmesh.models.metadata import (
    DocumentMetadata,
    MetadataKind,
    merge_metadata,
    metadata_contains,
    metadata_kind,
    normalize_metadata,
)


class TestMetadataKind:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("text", MetadataKind.STRING),
            (3, MetadataKind.NUMBER),
            (0.5, MetadataKind.NUMBER),
            (True, MetadataKind.BOOLEAN),
            ([1, "a"], MetadataKind.LIST),
            ({"k": "v"}, MetadataKind.MAP),
        ],
    )
    def test_supported_kinds(self, value, expected) -> None:
        assert metadata_kind(value) is expected

    @pytest.mark.parametrize("value", [None, object(), b"bytes", float("nan")])
    def test_unsupported_values_raise(self, value) -> None:
        with pytest.raises(TypeError):
            metadata_kind(value)

    def test_normalize_rejects_non_string_keys(self) -> None:
        with pytest.raises(TypeError):
            normalize_metadata({1: "one"})

    def test_normalize_converts_tuples(self) -> None:
        assert normalize_metadata({"tags": ("a", "b")}) == {"tags": ["a", "b"]}


class TestMergeMetadata:
    def test_overlay_replaces_scalars_and_lists(self) -> None:
        merged = merge_metadata(
            {"language": "en", "keywords": ["a"]},
            {"language": "pt", "keywords": ["b"]},
        )
        assert merged == {"language": "pt", "keywords": ["b"]}

    def test_nested_maps_are_merged(self) -> None:
        merged = merge_metadata(
            {"stats": {"words": 10, "lines": 2}},
            {"stats": {"words": 12}},
        )
        assert merged == {"stats": {"words": 12, "lines": 2}}

    def test_inputs_are_not_mutated(self) -> None:
        base = {"stats": {"words": 10}}
        merge_metadata(base, {"stats": {"words": 1}, "extra": True})
        assert base == {"stats": {"words": 10}}


class TestMetadataContains:
    _chunk = {
        "document_type": "report",
        "keywords": ["finance", "q3", "revenue"],
        "confidence": 0.8,
        "stats": {"words": 120, "lang": "en"},
        "reviewed": True,
    }

    def test_empty_criteria_matches_everything(self) -> None:
        assert metadata_contains(self._chunk, {})

    def test_scalar_equality(self) -> None:
        assert metadata_contains(self._chunk, {"document_type": "report"})
        assert not metadata_contains(self._chunk, {"document_type": "email"})

    def test_list_subset(self) -> None:
        assert metadata_contains(self._chunk, {"keywords": ["q3", "finance"]})
        assert not metadata_contains(self._chunk, {"keywords": ["q3", "marketing"]})

    def test_list_contains_bare_scalar(self) -> None:
        assert metadata_contains(self._chunk, {"keywords": "revenue"})

    def test_nested_map_subset(self) -> None:
        assert metadata_contains(self._chunk, {"stats": {"lang": "en"}})
        assert not metadata_contains(self._chunk, {"stats": {"lang": "pt"}})

    def test_missing_key_does_not_match(self) -> None:
        assert not metadata_contains(self._chunk, {"author": "someone"})

    def test_bool_never_matches_number(self) -> None:
        assert not metadata_contains({"flag": 1}, {"flag": True})
        assert metadata_contains(self._chunk, {"reviewed": True})


class TestDocumentMetadata:
    def test_defaults(self) -> None:
        meta = DocumentMetadata()
        assert meta.document_type == "unknown"
        assert meta.language == "unknown"
        assert meta.confidence == 0.0

    def test_confidence_is_bounded(self) -> None:
        with pytest.raises(ValidationError):
            DocumentMetadata(confidence=1.5)

    def test_to_metadata_flattens_extra(self) -> None:
        meta = DocumentMetadata(
            document_type="article",
            keywords=["rag"],
            extra={"semantic_hash": "abc"},
        )
        flat = meta.to_metadata()
        assert flat["document_type"] == "article"
        assert flat["keywords"] == ["rag"]
        assert flat["semantic_hash"] == "abc"

    def test_extra_rejects_unsupported_values(self) -> None:
        with pytest.raises(ValidationError):
            DocumentMetadata(extra={"when": object()})
