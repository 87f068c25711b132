"""Production wiring of :class:`IngestionOrchestrator` from settings."""

from __future__ import annotations

import logging

from cognify_ingest.config import Settings, settings
from cognify_ingest.ingestion.embedder import EmbeddingClient, get_embeddings
from cognify_ingest.ingestion.loader import DocumentTextExtractor
from cognify_ingest.orchestration.events import (
    EventPublisher,
    LoggingEventPublisher,
    WebhookEventPublisher,
)
from cognify_ingest.orchestration.orchestrator import IngestionOrchestrator
from cognify_ingest.orchestration.retry import RetryPolicy
from cognify_ingest.storage.checkpoints import CheckpointStore
from cognify_ingest.storage.chroma_store import ChromaFragmentStore
from cognify_ingest.storage.database import (
    create_engine_from_settings,
    create_session_factory,
    init_db,
)
from cognify_ingest.storage.documents import DocumentRepository
from cognify_ingest.storage.object_storage import get_object_storage
from cognify_ingest.storage.runs import RunRepository

logger = logging.getLogger(__name__)


def get_event_publisher(config: Settings = settings) -> EventPublisher:
    """Webhook publisher when ``event_webhook_url`` is set, else log-only."""
    if config.event_webhook_url:
        return WebhookEventPublisher(config.event_webhook_url, timeout=config.event_webhook_timeout)
    return LoggingEventPublisher()


def build_orchestrator(config: Settings = settings) -> IngestionOrchestrator:
    """Create every client from *config* and return a ready orchestrator.

    Creates the relational tables if they do not exist yet.
    """
    engine = create_engine_from_settings(config)
    init_db(engine)
    session_factory = create_session_factory(engine)

    documents = DocumentRepository(session_factory)
    fragments = ChromaFragmentStore.connect(
        documents,
        host=config.chroma_host,
        port=config.chroma_port,
        collection_name=config.chroma_collection,
        batch_size=config.fragment_insert_batch_size,
    )
    embedder = EmbeddingClient(
        get_embeddings(config),
        batch_size=config.embedding_batch_size,
        batch_delay=config.embedding_batch_delay_seconds,
        dimensions=config.embedding_dimensions,
    )
    retry_policy = RetryPolicy(
        max_attempts=config.stage_max_attempts,
        base_delay=config.stage_retry_base_delay_seconds,
        max_delay=config.stage_retry_max_delay_seconds,
    )

    logger.info(
        "Orchestrator ready (storage=%s, embeddings=%s/%s)",
        config.storage_backend, config.embedding_provider, config.embedding_model,
    )
    return IngestionOrchestrator(
        storage=get_object_storage(config),
        extractor=DocumentTextExtractor(),
        embedder=embedder,
        fragments=fragments,
        documents=documents,
        checkpoints=CheckpointStore(session_factory),
        runs=RunRepository(session_factory),
        events=get_event_publisher(config),
        retry_policy=retry_policy,
        chunk_size=config.chunk_size,
        chunk_overlap=config.chunk_overlap,
        signed_url_ttl=config.signed_url_ttl_seconds,
    )
