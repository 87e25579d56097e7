"""Business logic for MindMesh: ingestion, retrieval and answer synthesis."""
