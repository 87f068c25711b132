"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Embedding provider
    openai_api_key: str = Field(default="", description="OpenAI API key")
    openai_base_url: str = Field(
        default="",
        description=(
            "Base URL for an OpenAI-compatible embeddings API. "
            "Leave empty to use OpenAI cloud."
        ),
    )
    embedding_provider: str = Field(
        default="openai",
        description="'openai' (remote API) or 'huggingface' (local sentence-transformers)",
    )
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    embedding_batch_size: int = 100
    embedding_batch_delay_seconds: float = 1.0
    embedding_request_max_retries: int = 2

    # Chunking
    chunk_size: int = 1000
    chunk_overlap: int = 200

    # Relational store (documents, checkpoints, run state)
    database_url: str = "sqlite:///./cognify_ingest.db"

    # Vector store (fragments)
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "document_chunks"
    fragment_insert_batch_size: int = 50

    # Object storage
    storage_backend: str = Field(default="local", description="'local' or 'supabase'")
    storage_root: str = "./data/uploads"
    storage_url: str = ""
    storage_service_key: str = ""
    storage_bucket: str = "documents"
    storage_request_timeout: int = 30
    signed_url_ttl_seconds: int = 3600

    # Stage retries
    stage_max_attempts: int = 3
    stage_retry_base_delay_seconds: float = 2.0
    stage_retry_max_delay_seconds: float = 30.0

    # Outbound events
    event_webhook_url: str = Field(
        default="",
        description="Endpoint receiving document.processed / document.failed. Empty logs only.",
    )
    event_webhook_timeout: int = 10

    log_level: str = "INFO"

    # Kubeflow
    kfp_host: str = "http://localhost:8888"
    kfp_namespace: str = "kubeflow-user"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


# Singleton — import `settings` wherever needed.
settings = Settings()
