"""Document ingestion pipeline for the MindMesh knowledge base.

Orchestrates the full pipeline: **extract -> enrich -> chunk -> embed -> store**.

1. **Extract** (via ITextExtractor) -- raw upload bytes become text, or an
   explicit NoText reason that fails the document.

2. **Enrich** (metadata_enricher.py / MetadataEnricher) -- one document-level
   metadata record, from a single LLM call or the rule-based heuristics in
   metadata_rules.py.

3. **Chunk** (chunker.py / TextChunker) -- paragraph-aware fragments bounded
   by min/target/max character sizes.

4. **Embed** (EmbeddingClient) -- one vector per fragment, with retry,
   timeout and circuit breaking.

5. **Store** (via IDocumentStore) -- chunks are persisted with their vectors
   and the document moves to ``completed``.

The IngestionService class (ingestion_service.py) owns the document state
machine and content-hash deduplication.  Submodules are imported directly
because embedding_client depends on metadata_rules.
"""
