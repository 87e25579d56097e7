"""Orchestrator for the document ingestion pipeline.

Pipeline stages: **hash -> dedupe -> extract -> enrich -> chunk -> embed -> store**.

:class:`IngestionService` owns the document state machine::

    pending -> processing -> completed
                          -> failed

and coordinates five collaborators that know nothing about each other:

    1. ITextExtractor     -- raw bytes to text (or an explicit NoText reason)
    2. MetadataEnricher   -- one descriptive metadata record per document
    3. TextChunker        -- bounded, ordered fragments
    4. EmbeddingClient    -- one vector per fragment
    5. IDocumentStore     -- documents and chunks, unique per (owner, hash)

Any failure after the document row exists leaves it ``failed`` with no
chunks and re-raises, so the attempt stays auditable.
"""

from __future__ import annotations

import hashlib
import time

import structlog

from mindmesh.interfaces.document_store import IDocumentStore
from mindmesh.interfaces.text_extractor import ITextExtractor
from mindmesh.models.document import (
    Document,
    DocumentChunk,
    DocumentStatus,
    IngestionResult,
)
from mindmesh.models.metadata import merge_metadata
from mindmesh.services.embedding_client import EmbeddingClient
from mindmesh.services.ingestion.chunker import TextChunker
from mindmesh.services.ingestion.metadata_enricher import MetadataEnricher
from mindmesh.utils.errors import (
    DuplicateDocumentError,
    ExtractionFailedError,
    InvalidRequestError,
    NotFoundError,
)

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_FILENAME = "untitled"


def content_hash(data: bytes) -> str:
    """SHA-256 hex digest of the raw upload."""
    return hashlib.sha256(data).hexdigest()


class IngestionService:
    """Ingests, reprocesses and deletes documents.

    Parameters
    ----------
    store:
        Document and chunk persistence.
    extractor:
        Converts uploaded bytes to text.
    enricher:
        Produces document-level metadata, once per document.
    chunker:
        Splits text into fragments.
    embedding_client:
        Embeds each fragment.
    """

    def __init__(
        self,
        store: IDocumentStore,
        extractor: ITextExtractor,
        enricher: MetadataEnricher,
        chunker: TextChunker,
        embedding_client: EmbeddingClient,
    ) -> None:
        self._store = store
        self._extractor = extractor
        self._enricher = enricher
        self._chunker = chunker
        self._embedding_client = embedding_client

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest(
        self,
        owner_id: str,
        filename: str | None,
        data: bytes,
        content_type: str | None = None,
    ) -> IngestionResult:
        """Ingest one upload for *owner_id*.

        Returns the existing document with ``is_duplicate=True`` when the
        owner already uploaded identical bytes.

        Raises
        ------
        InvalidRequestError
            Missing owner or empty file.
        ExtractionFailedError
            No usable text; the document is left ``failed``.
        """
        if not owner_id or not owner_id.strip():
            raise InvalidRequestError(message="owner_id is required", field="owner_id")
        if not data:
            raise InvalidRequestError(message="File is empty", field="file")

        start = time.monotonic()
        digest = content_hash(data)
        log = logger.bind(owner_id=owner_id, content_hash=digest[:12])

        existing = await self._store.find_document_by_hash(owner_id, digest)
        if existing is not None:
            log.info("duplicate_document", document_id=existing.id)
            return IngestionResult(document=existing, is_duplicate=True)

        document = Document(
            owner_id=owner_id,
            filename=(filename or "").strip() or _DEFAULT_FILENAME,
            content_hash=digest,
            content_type=content_type,
            size_bytes=len(data),
        )
        try:
            document = await self._store.insert_document(document)
        except DuplicateDocumentError:
            # A concurrent upload of the same bytes won the insert.
            winner = await self._store.find_document_by_hash(owner_id, digest)
            if winner is None:
                raise
            log.info("duplicate_document", document_id=winner.id, detected="on_insert")
            return IngestionResult(document=winner, is_duplicate=True)

        document = await self._transition(document, DocumentStatus.PROCESSING)
        log = log.bind(document_id=document.id)

        try:
            extraction = await self._extractor.extract(data, content_type)
            if not extraction.has_text:
                reason = extraction.no_text_reason.value if extraction.no_text_reason else "no_text"
                raise ExtractionFailedError(
                    message=f"No usable text extracted from {document.filename} ({reason})",
                    provider_name=extraction.extractor,
                )
            document = await self._store.update_document(
                document.model_copy(update={"extracted_text": extraction.text})
            )
            chunks_created, total_tokens = await self._index(document, extraction.text or "")
            document = await self._transition(document, DocumentStatus.COMPLETED, error_message=None)
        except Exception as exc:
            await self._mark_failed(document, exc)
            raise

        elapsed = round(time.monotonic() - start, 3)
        log.info(
            "document_ingested",
            filename=document.filename,
            chunks=chunks_created,
            tokens=total_tokens,
            elapsed_s=elapsed,
        )
        return IngestionResult(
            document=document,
            is_duplicate=False,
            chunks_created=chunks_created,
            total_tokens=total_tokens,
            ingestion_time=elapsed,
        )

    async def reprocess(self, document_id: str) -> IngestionResult:
        """Rebuild a document's chunks from its retained text.

        The move to processing is validated before prior chunks are
        deleted; new chunk ids are generated while the document id and
        hash are preserved.
        """
        start = time.monotonic()
        document = await self.get_document(document_id)
        document = await self._transition(document, DocumentStatus.PROCESSING, error_message=None)

        try:
            removed = await self._store.delete_chunks(document.id)
            if not document.extracted_text:
                raise ExtractionFailedError(
                    message=f"Document {document.id} has no retained text to reprocess"
                )
            chunks_created, total_tokens = await self._index(document, document.extracted_text)
            document = await self._transition(document, DocumentStatus.COMPLETED)
        except Exception as exc:
            await self._mark_failed(document, exc)
            raise

        elapsed = round(time.monotonic() - start, 3)
        logger.info(
            "document_reprocessed",
            document_id=document.id,
            removed_chunks=removed,
            chunks=chunks_created,
            elapsed_s=elapsed,
        )
        return IngestionResult(
            document=document,
            chunks_created=chunks_created,
            total_tokens=total_tokens,
            ingestion_time=elapsed,
        )

    # ------------------------------------------------------------------
    # Queries & deletion
    # ------------------------------------------------------------------

    async def get_document(self, document_id: str) -> Document:
        document = await self._store.get_document(document_id)
        if document is None:
            raise NotFoundError(message=f"Document {document_id} not found")
        return document

    async def list_documents(self, owner_id: str) -> list[Document]:
        if not owner_id or not owner_id.strip():
            raise InvalidRequestError(message="owner_id is required", field="owner_id")
        return await self._store.list_documents(owner_id)

    async def get_chunks(self, document_id: str) -> list[DocumentChunk]:
        await self.get_document(document_id)
        return await self._store.get_chunks(document_id)

    async def count_chunks(self, document_id: str) -> int:
        await self.get_document(document_id)
        return await self._store.count_chunks(document_id)

    async def delete_document(self, document_id: str) -> None:
        """Delete a document's chunks, then the document itself."""
        document = await self.get_document(document_id)
        removed = await self._store.delete_chunks(document.id)
        await self._store.delete_document(document.id)
        logger.info("document_deleted", document_id=document.id, removed_chunks=removed)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _index(self, document: Document, text: str) -> tuple[int, int]:
        """Enrich, chunk, embed and persist; returns (chunks, tokens)."""
        enrichment = await self._enricher.enrich(text, document.filename)
        document_metadata = merge_metadata(
            enrichment.to_metadata(),
            {"document_id": document.id, "filename": document.filename},
        )

        fragments = self._chunker.chunk(text, document_metadata)
        chunks: list[DocumentChunk] = []
        for fragment in fragments:
            vector = await self._embedding_client.embed(fragment.text)
            chunks.append(
                DocumentChunk(
                    document_id=document.id,
                    chunk_index=fragment.index,
                    content=fragment.text,
                    token_count=fragment.token_count,
                    embedding=vector,
                    metadata=fragment.metadata,
                )
            )

        await self._store.add_chunks(chunks)
        return len(chunks), sum(chunk.token_count for chunk in chunks)

    async def _transition(
        self,
        document: Document,
        status: DocumentStatus,
        **changes: object,
    ) -> Document:
        return await self._store.update_document(document.with_status(status, **changes))

    async def _mark_failed(self, document: Document, exc: Exception) -> None:
        """Leave *document* failed with no chunks; never masks *exc*."""
        logger.error(
            "document_failed",
            document_id=document.id,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        try:
            await self._store.delete_chunks(document.id)
            current = await self._store.get_document(document.id) or document
            if current.status is not DocumentStatus.FAILED:
                await self._transition(current, DocumentStatus.FAILED, error_message=str(exc))
        except Exception as cleanup_exc:
            logger.error(
                "document_fail_transition_failed",
                document_id=document.id,
                error=str(cleanup_exc),
            )
