"""Stage orchestrator — drives one document from ``uploaded`` to ``ready``/``failed``.

Stages run strictly in order, each wrapped in a bounded retry loop::

    extract-and-chunk → generate-embeddings → store-chunks → finalize → cleanup

Stages hand data to each other through :class:`CheckpointStore`, and the
:class:`IngestionRun` is saved after every transition, so a run interrupted
by a restart continues from the stage its persisted state maps to.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from cognify_ingest.config import settings
from cognify_ingest.errors import (
    ChunkingError,
    DocumentNotFoundError,
    ExtractionError,
    InvalidStatusTransitionError,
    RunNotFoundError,
)
from cognify_ingest.ingestion.chunker import chunk_text, chunking_stats
from cognify_ingest.ingestion.embedder import EmbeddingClient
from cognify_ingest.ingestion.loader import TextExtractor
from cognify_ingest.orchestration.events import (
    DocumentFailed,
    DocumentProcessed,
    DocumentUploaded,
    EventPublisher,
    IngestionEvent,
)
from cognify_ingest.orchestration.retry import RetryPolicy, run_with_retries
from cognify_ingest.orchestration.state import (
    CHUNKS_CHECKPOINT,
    EMBEDDINGS_CHECKPOINT,
    FAILED_EVENT,
    PROCESSED_EVENT,
    IngestionRun,
    RunState,
    StageName,
)
from cognify_ingest.storage.base import FragmentStoreBase
from cognify_ingest.storage.checkpoints import CheckpointStore
from cognify_ingest.storage.documents import DocumentRepository
from cognify_ingest.storage.models import DocumentStatus
from cognify_ingest.storage.object_storage import ObjectStorage
from cognify_ingest.storage.runs import RunRepository

logger = logging.getLogger(__name__)

STAGE_ORDER: tuple[StageName, ...] = (
    StageName.EXTRACT_AND_CHUNK,
    StageName.GENERATE_EMBEDDINGS,
    StageName.STORE_CHUNKS,
    StageName.FINALIZE,
    StageName.CLEANUP,
)


class IngestionOrchestrator:
    """Runs the ingestion stages for uploaded documents.

    Every collaborator is passed in; see
    :func:`cognify_ingest.orchestration.factory.build_orchestrator` for the
    production wiring.

    Parameters
    ----------
    storage:
        Resolves storage pointers to time-limited access URLs.
    extractor:
        Turns an access URL into plain text.
    embedder:
        Batched, paced embedding client.
    fragments:
        Fragment backend (batched insert with compensation).
    documents / checkpoints / runs:
        Relational stores for status, stage hand-offs and run state.
    events:
        Outbound ``processed`` / ``failed`` notifications.
    retry_policy:
        Attempts and backoff per stage.
    chunk_size / chunk_overlap:
        Chunker parameters.
    signed_url_ttl:
        Lifetime of the access URL in seconds.
    sleep:
        Backoff sleep; injected for tests.
    """

    def __init__(
        self,
        *,
        storage: ObjectStorage,
        extractor: TextExtractor,
        embedder: EmbeddingClient,
        fragments: FragmentStoreBase,
        documents: DocumentRepository,
        checkpoints: CheckpointStore,
        runs: RunRepository,
        events: EventPublisher,
        retry_policy: RetryPolicy | None = None,
        chunk_size: int = settings.chunk_size,
        chunk_overlap: int = settings.chunk_overlap,
        signed_url_ttl: int = settings.signed_url_ttl_seconds,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size ({chunk_size}) must be > 0")
        if not 0 <= chunk_overlap < chunk_size:
            raise ValueError(f"chunk_overlap ({chunk_overlap}) must be < chunk_size ({chunk_size})")

        self.storage = storage
        self.extractor = extractor
        self.embedder = embedder
        self.fragments = fragments
        self.documents = documents
        self.checkpoints = checkpoints
        self.runs = runs
        self.events = events
        self.retry_policy = retry_policy or RetryPolicy()
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.signed_url_ttl = signed_url_ttl
        self._sleep = sleep

        self._stages: dict[StageName, Callable[[IngestionRun], None]] = {
            StageName.EXTRACT_AND_CHUNK: self._extract_and_chunk,
            StageName.GENERATE_EMBEDDINGS: self._generate_embeddings,
            StageName.STORE_CHUNKS: self._store_chunks,
            StageName.FINALIZE: self._finalize,
        }

    # -- entry points ---------------------------------------------------------

    def handle_uploaded(self, event: DocumentUploaded) -> IngestionRun:
        """Process a ``document.uploaded`` event.

        A redelivered event for a run still in flight resumes that run; a
        run that already finished is returned as is.
        """
        existing = self.runs.get(event.document_id)
        if existing is not None:
            if existing.is_terminal:
                logger.info(
                    "Ignoring duplicate upload event for document %s (run is %s)",
                    event.document_id, existing.state.value,
                )
                return existing
            logger.info("Upload event redelivered; resuming document %s", event.document_id)
            return self._drive(existing)

        run = IngestionRun(
            document_id=event.document_id,
            user_id=event.user_id,
            storage_path=event.storage_path,
            filename=event.filename,
        )
        self.runs.save(run)
        logger.info("Processing document: %s (%s)", event.filename, event.document_id)
        return self._drive(run)

    def resume(self, document_id: str) -> IngestionRun:
        """Continue a persisted run from its last completed stage."""
        run = self.runs.get(document_id)
        if run is None:
            raise RunNotFoundError(document_id)
        if run.is_terminal:
            logger.info("Run for document %s is already %s", document_id, run.state.value)
            return run
        logger.info("Resuming document %s at stage %s", document_id, run.resume_stage.value)
        return self._drive(run)

    def resume_incomplete(self) -> list[IngestionRun]:
        """Resume every non-terminal run; one failing run does not stop the rest."""
        results: list[IngestionRun] = []
        for run in self.runs.list_active():
            try:
                results.append(self._drive(run))
            except Exception as exc:
                logger.warning("Resumed run for document %s failed: %s", run.document_id, exc)
                results.append(run)
        logger.info("Resumed %d incomplete runs", len(results))
        return results

    # -- driver ---------------------------------------------------------------

    def _drive(self, run: IngestionRun) -> IngestionRun:
        try:
            start = STAGE_ORDER.index(run.resume_stage)
            for stage in STAGE_ORDER[start:]:
                if stage is StageName.CLEANUP:
                    self._complete(run)
                else:
                    self._run_stage(run, stage)
        except Exception as exc:
            self._fail(run, exc)
            raise
        return run

    def _run_stage(self, run: IngestionRun, stage: StageName) -> None:
        def on_attempt(attempt: int) -> None:
            run.record_attempt(stage)
            self.runs.save(run)
            logger.info(
                "Stage %s attempt %d/%d for document %s",
                stage.value, attempt, self.retry_policy.max_attempts, run.document_id,
            )

        handler = self._stages[stage]
        run_with_retries(
            stage.value,
            lambda: handler(run),
            self.retry_policy,
            sleep=self._sleep,
            on_attempt=on_attempt,
        )
        if stage is StageName.FINALIZE:
            # The document is ready from here on; the run is re-saved by cleanup.
            self._save_quietly(run)
        else:
            self.runs.save(run)

    # -- stages ---------------------------------------------------------------

    def _extract_and_chunk(self, run: IngestionRun) -> None:
        url = self.storage.get_temporary_access_url(run.storage_path, self.signed_url_ttl)
        extracted = self.extractor.extract_text(url)
        if not extracted.text.strip():
            raise ExtractionError("No text could be extracted from the document")

        run.advance(RunState.CHUNKING)
        self.runs.save(run)

        chunks = chunk_text(extracted.text, self.chunk_size, self.chunk_overlap)
        if not chunks:
            raise ChunkingError("Chunking produced no fragments")

        stats = chunking_stats(chunks)
        logger.info(
            "Chunking stats: %d chunks, avg %d chars (min %d, max %d), %d total chars",
            stats.total_chunks, stats.avg_chunk_size, stats.min_chunk_size,
            stats.max_chunk_size, stats.total_characters,
        )

        self.checkpoints.save(
            run.document_id,
            CHUNKS_CHECKPOINT,
            {"chunks": chunks, "page_count": extracted.page_count},
        )
        run.fragment_count = len(chunks)
        run.page_count = extracted.page_count
        run.complete_stage(StageName.EXTRACT_AND_CHUNK, RunState.EMBEDDING)

    def _generate_embeddings(self, run: IngestionRun) -> None:
        chunks = self.checkpoints.load(run.document_id, CHUNKS_CHECKPOINT)["chunks"]
        logger.info("Generating embeddings for %d chunks", len(chunks))

        vectors = self.embedder.embed_in_batches(chunks)

        self.checkpoints.save(run.document_id, EMBEDDINGS_CHECKPOINT, {"embeddings": vectors})
        run.embedding_count = len(vectors)
        run.complete_stage(StageName.GENERATE_EMBEDDINGS, RunState.PERSISTING)

    def _store_chunks(self, run: IngestionRun) -> None:
        chunks = self.checkpoints.load(run.document_id, CHUNKS_CHECKPOINT)["chunks"]
        vectors = self.checkpoints.load(run.document_id, EMBEDDINGS_CHECKPOINT)["embeddings"]

        run.stored_count = self.fragments.persist(run.document_id, chunks, vectors)
        logger.info("Stored %d chunks for document %s", run.stored_count, run.document_id)
        run.complete_stage(StageName.STORE_CHUNKS, RunState.FINALIZING)

    def _finalize(self, run: IngestionRun) -> None:
        try:
            self.documents.mark_ready(run.document_id, page_count=run.page_count)
        except InvalidStatusTransitionError:
            # A previous attempt may have flipped the status before crashing.
            current = self.documents.get(run.document_id)
            if current is None or current.status is not DocumentStatus.READY:
                raise
            logger.info("Document %s is already ready", run.document_id)
        run.complete_stage(StageName.FINALIZE, RunState.CLEANUP)

    def _complete(self, run: IngestionRun) -> None:
        if PROCESSED_EVENT not in run.events_emitted:
            self._publish(
                DocumentProcessed(
                    document_id=run.document_id,
                    user_id=run.user_id,
                    fragment_count=run.stored_count or run.fragment_count or 0,
                    page_count=run.page_count,
                )
            )
            run.events_emitted.append(PROCESSED_EVENT)
            self._save_quietly(run)

        run.record_attempt(StageName.CLEANUP)
        self._cleanup_checkpoints(run.document_id)
        run.complete_stage(StageName.CLEANUP, RunState.READY)
        self._save_quietly(run)
        logger.info(
            "Document %s processed successfully: %d fragments",
            run.document_id, run.stored_count or 0,
        )

    # -- failure path ---------------------------------------------------------

    def _fail(self, run: IngestionRun, exc: Exception) -> None:
        document_id = run.document_id
        logger.error("Document processing failed for %s: %s", document_id, exc)

        try:
            self.documents.mark_failed(document_id)
        except DocumentNotFoundError:
            logger.warning("Document %s no longer exists; status not updated", document_id)
        except InvalidStatusTransitionError as err:
            logger.warning("Could not mark document %s failed: %s", document_id, err)
        except Exception:
            logger.exception("Failed to update status of document %s", document_id)

        if StageName.STORE_CHUNKS in run.completed_stages:
            self._discard_fragments(document_id)

        if FAILED_EVENT not in run.events_emitted:
            self._publish(
                DocumentFailed(
                    document_id=document_id,
                    user_id=run.user_id,
                    error=str(exc) or type(exc).__name__,
                )
            )
            run.events_emitted.append(FAILED_EVENT)

        self._cleanup_checkpoints(document_id)

        if not run.is_terminal:
            run.fail(exc)
        try:
            self.runs.save(run)
        except Exception:
            logger.exception("Failed to save failed run for document %s", document_id)

    # -- helpers --------------------------------------------------------------

    def _discard_fragments(self, document_id: str) -> None:
        """Drop stored fragments of a document that will not become ready."""
        try:
            document = self.documents.get(document_id)
            if document is not None and document.status is DocumentStatus.READY:
                logger.warning(
                    "Document %s is already ready; keeping its fragments", document_id
                )
                return
            self.fragments.delete_document_fragments(document_id)
            logger.info("Removed stored fragments of failed document %s", document_id)
        except Exception:
            logger.exception("Failed to remove fragments of document %s", document_id)

    def _save_quietly(self, run: IngestionRun) -> None:
        try:
            self.runs.save(run)
        except Exception:
            logger.exception("Failed to save run for document %s", run.document_id)

    def _cleanup_checkpoints(self, document_id: str) -> None:
        try:
            self.checkpoints.delete_all(document_id)
        except Exception as exc:
            logger.warning("Checkpoint cleanup failed for document %s: %s", document_id, exc)

    def _publish(self, event: IngestionEvent) -> None:
        try:
            self.events.publish(event)
        except Exception:
            logger.exception("Publishing event %s failed", event.name)
