"""Abstract base class for raw-bytes to text extraction."""

from __future__ import annotations

from abc import ABC, abstractmethod

from mindmesh.models.extraction import ExtractionResult


# Concrete implementation: DocumentTextExtractor (plain text, HTML, PDF)
# Located in: mindmesh/providers/extraction/
class ITextExtractor(ABC):
    """Contract for turning uploaded bytes into plain text.

    Implementations must not raise on unknown or garbled input; they
    return :meth:`ExtractionResult.no_text` with a reason instead.
    """

    @abstractmethod
    async def extract(self, data: bytes, content_type: str | None = None) -> ExtractionResult:
        """Extract text from *data*, using *content_type* as a hint."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for logging."""
