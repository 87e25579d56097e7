"""MindMesh domain models: re-exports all public model classes.

Submodules by concern:
    - document.py    Document lifecycle, chunks, search results, ingestion results
    - chat.py        Sessions, messages and chat turn results
    - metadata.py    Closed metadata value kinds and enrichment output
    - extraction.py  Text extraction outcome (text or NoText reason)
"""

from __future__ import annotations

from mindmesh.models.chat import (
    PLACEHOLDER_TITLE,
    ChatMessage,
    ChatResult,
    ChatSession,
    CitedChunk,
    MessageRole,
)
from mindmesh.models.document import (
    ChunkSearchResult,
    Document,
    DocumentChunk,
    DocumentStatus,
    IngestionResult,
    TextFragment,
)
from mindmesh.models.extraction import ExtractionResult, NoTextReason
from mindmesh.models.metadata import (
    DocumentMetadata,
    Metadata,
    MetadataKind,
    MetadataValue,
    merge_metadata,
    metadata_contains,
    normalize_metadata,
)

__all__ = [
    "PLACEHOLDER_TITLE",
    "ChatMessage",
    "ChatResult",
    "ChatSession",
    "ChunkSearchResult",
    "CitedChunk",
    "Document",
    "DocumentChunk",
    "DocumentMetadata",
    "DocumentStatus",
    "ExtractionResult",
    "IngestionResult",
    "MessageRole",
    "Metadata",
    "MetadataKind",
    "MetadataValue",
    "NoTextReason",
    "TextFragment",
    "merge_metadata",
    "metadata_contains",
    "normalize_metadata",
]
