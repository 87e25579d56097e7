"""Application settings loaded from environment variables via pydantic-settings.

# --- HOW SETTINGS WORK -----------------------------------------------
#
# Values are read from (highest priority first):
#
#   1. Environment variables, e.g. OPENAI_API_KEY=sk-abc123
#   2. config/config.yaml, merged in by mindmesh.config.loader
#   3. The .env file in the working directory
#   4. The defaults below
#
# Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.
# An empty credential means "not configured": the composition root in
# mindmesh.main then wires the deterministic offline providers instead.
# ---------------------------------------------------------------------
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """MindMesh application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === Providers ===
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_embedding_model: str = "text-embedding-3-small"
    openai_chat_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    llm_temperature: float = 0.3
    llm_max_tokens: int = 1500
    llm_timeout_seconds: float = 60.0

    # === Chunking ===
    chunk_min_size: int = 200
    chunk_target_size: int = 800
    chunk_max_size: int = 1000
    token_multiplier: float = 1.3

    # === Embedding client ===
    embedding_dimension: int = 1536
    embedding_max_chars: int = 32000
    embedding_max_attempts: int = 3
    embedding_backoff_base: float = 0.5
    embedding_backoff_multiplier: float = 2.0
    embedding_timeout_seconds: float = 30.0
    auxiliary_max_chars: int = 4000

    # === Circuit breaker (tracked, disabled unless switched on) ===
    circuit_breaker_enabled: bool = False
    circuit_breaker_failure_rate: float = 0.5
    circuit_breaker_window: int = 10
    circuit_breaker_open_seconds: float = 30.0
    circuit_breaker_half_open_calls: int = 3

    # === Metadata enrichment ===
    # "single": one JSON-returning LLM call per document.
    # "detailed": summarize / keywords / topics / classify calls plus stats.
    enrichment_strategy: str = "single"
    enrichment_max_chars: int = 6000

    # === Retrieval & chat ===
    retrieval_default_limit: int = 5
    retrieval_max_limit: int = 20
    snippet_max_length: int = 300

    # === Storage ===
    storage_backend: str = "sqlite"
    database_path: str = "data/mindmesh.db"
    max_upload_bytes: int = 20 * 1024 * 1024

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_bounds(self) -> "Settings":
        if not 0 < self.chunk_min_size < self.chunk_target_size < self.chunk_max_size:
            raise ValueError(
                "chunk sizes must satisfy 0 < chunk_min_size < chunk_target_size < chunk_max_size"
            )
        if self.enrichment_strategy not in ("single", "detailed"):
            raise ValueError("enrichment_strategy must be 'single' or 'detailed'")
        if self.storage_backend not in ("sqlite", "memory"):
            raise ValueError("storage_backend must be 'sqlite' or 'memory'")
        if not 1 <= self.retrieval_default_limit <= self.retrieval_max_limit:
            raise ValueError("retrieval_default_limit must be between 1 and retrieval_max_limit")
        return self

    def get_available_llm_providers(self) -> list[str]:
        """Return the live LLM providers that have credentials configured."""
        providers: list[str] = []
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.openai_api_key:
            providers.append("openai")
        return providers
