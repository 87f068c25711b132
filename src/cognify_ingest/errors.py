"""Exception hierarchy for the ingestion pipeline.

Every error carries a ``retryable`` flag read by the per-stage retry loop
(:func:`cognify_ingest.orchestration.retry.run_with_retries`):

    IngestionError                 (base, retryable)
    +-- StorageError               object storage / signed URL failure
    +-- ExtractionError            no machine-readable text       [fatal]
    +-- ChunkingError              chunking produced no fragments [fatal]
    +-- EmbeddingError             embedding provider failure
    +-- VectorCountMismatchError   fragments and vectors differ   [fatal]
    +-- PersistenceError           batch insert failed            [fatal]
    +-- CheckpointNotFoundError    stage input missing            [fatal]
    +-- DocumentNotFoundError      document row absent            [fatal]
    +-- InvalidStatusTransitionError                              [fatal]
    +-- RunNotFoundError           nothing to resume              [fatal]

Exceptions raised by third-party clients (HTTP, database, Chroma) are not
wrapped and count as transient.
"""

from __future__ import annotations


class IngestionError(Exception):
    """Base exception for all ingestion failures."""

    retryable: bool = True

    def __init__(self, message: str = "Document ingestion failed") -> None:
        self.message = message
        super().__init__(message)


class StorageError(IngestionError):
    """Raised when the stored source document cannot be reached."""


class ExtractionError(IngestionError):
    """Raised when a source yields no usable text (e.g. a scanned PDF)."""

    retryable = False


class ChunkingError(IngestionError):
    """Raised when chunking extracted text yields zero fragments."""

    retryable = False


class EmbeddingError(IngestionError):
    """Raised when the embedding provider fails or returns a malformed batch."""


class VectorCountMismatchError(IngestionError):
    """Raised when the fragment and vector sequences have different lengths."""

    retryable = False

    def __init__(self, fragments: int, vectors: int) -> None:
        self.fragments = fragments
        self.vectors = vectors
        super().__init__(
            f"Fragment/vector count mismatch: {fragments} fragments, {vectors} vectors"
        )


class PersistenceError(IngestionError):
    """Raised after a failed batch insert has been compensated."""

    retryable = False


class CheckpointNotFoundError(IngestionError):
    """Raised when a stage's input checkpoint does not exist."""

    retryable = False

    def __init__(self, document_id: str, stage_name: str) -> None:
        self.document_id = document_id
        self.stage_name = stage_name
        super().__init__(f"No checkpoint {stage_name!r} found for document {document_id}")


class DocumentNotFoundError(IngestionError):
    """Raised when the document row does not exist."""

    retryable = False

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"Document {document_id} not found")


class InvalidStatusTransitionError(IngestionError):
    """Raised when a state change is not allowed by the state machine."""

    retryable = False

    def __init__(self, current: str, target: str, *, subject: str = "document") -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid {subject} transition: {current} -> {target}")


class RunNotFoundError(IngestionError):
    """Raised when no ingestion run is stored for a document."""

    retryable = False

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"No ingestion run found for document {document_id}")
