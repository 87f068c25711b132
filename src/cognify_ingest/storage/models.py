"""Domain models for documents and their persisted fragments."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from cognify_ingest.errors import VectorCountMismatchError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    """User-visible lifecycle of a document.

    ``processing`` changes exactly once, to ``ready`` or ``failed``.
    """

    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not DocumentStatus.PROCESSING


class Document(BaseModel):
    """An uploaded source document.

    Attributes
    ----------
    id:
        Opaque document identifier.
    user_id:
        Owning user.
    filename:
        Name declared at upload time.
    storage_path:
        Pointer into object storage.
    status:
        Lifecycle state; see :class:`DocumentStatus`.
    file_size_bytes:
        Size of the uploaded file.
    page_count:
        Set when ingestion succeeds.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    filename: str
    storage_path: str
    status: DocumentStatus = DocumentStatus.PROCESSING
    file_size_bytes: int = 0
    page_count: int | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class FragmentMetadata(BaseModel):
    """Lightweight metadata stored next to each fragment."""

    length: int
    position: int
    total_chunks: int


class Fragment(BaseModel):
    """One persisted chunk of document text with its embedding."""

    id: str
    document_id: str
    chunk_index: int
    content: str
    embedding: list[float]
    metadata: FragmentMetadata


def fragment_id(document_id: str, chunk_index: int) -> str:
    """Deterministic id so a repeated write replaces instead of duplicating."""
    return f"{document_id}_{chunk_index}"


def build_fragments(
    document_id: str,
    chunks: Sequence[str],
    vectors: Sequence[Sequence[float]],
) -> list[Fragment]:
    """Pair chunk ``i`` with vector ``i``; indices run ``0..N-1`` in chunk order."""
    if len(chunks) != len(vectors):
        raise VectorCountMismatchError(len(chunks), len(vectors))

    total = len(chunks)
    return [
        Fragment(
            id=fragment_id(document_id, index),
            document_id=document_id,
            chunk_index=index,
            content=chunk,
            embedding=list(vector),
            metadata=FragmentMetadata(length=len(chunk), position=index, total_chunks=total),
        )
        for index, (chunk, vector) in enumerate(zip(chunks, vectors))
    ]
