"""Chroma implementation of the fragment-store abstraction."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from cognify_ingest.config import settings
from cognify_ingest.storage.base import FragmentStoreBase
from cognify_ingest.storage.models import Fragment

if TYPE_CHECKING:
    from cognify_ingest.storage.documents import DocumentRepository

logger = logging.getLogger(__name__)


def _fragment_metadata(fragment: Fragment) -> dict[str, Any]:
    """Chroma metadata values must be flat str/int/float/bool."""
    return {
        "document_id": fragment.document_id,
        "chunk_index": fragment.chunk_index,
        "length": fragment.metadata.length,
        "position": fragment.metadata.position,
        "total_chunks": fragment.metadata.total_chunks,
    }


class ChromaFragmentStore(FragmentStoreBase):
    """Chroma-backed fragment table.

    Parameters
    ----------
    collection:
        A Chroma collection (``client.get_or_create_collection(...)``).
    documents:
        See :class:`FragmentStoreBase`.
    batch_size:
        Rows per ``upsert`` call.
    """

    def __init__(
        self,
        collection: Any,
        documents: DocumentRepository | None = None,
        *,
        batch_size: int = settings.fragment_insert_batch_size,
    ) -> None:
        super().__init__(documents, batch_size=batch_size)
        self._collection = collection

    @classmethod
    def connect(
        cls,
        documents: DocumentRepository | None = None,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        collection_name: str = settings.chroma_collection,
        distance_metric: str = "cosine",
        batch_size: int = settings.fragment_insert_batch_size,
    ) -> ChromaFragmentStore:
        """Connect to a Chroma server and open (or create) *collection_name*."""
        import chromadb

        client = chromadb.HttpClient(host=host, port=port)
        collection = client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": distance_metric},
        )
        logger.info("Connected to Chroma collection %r at %s:%d", collection_name, host, port)
        return cls(collection, documents, batch_size=batch_size)

    # -- FragmentStoreBase overrides ------------------------------------------

    def insert_batch(self, fragments: Sequence[Fragment]) -> None:
        # Deterministic ids: writing the same fragment twice replaces it.
        self._collection.upsert(
            ids=[f.id for f in fragments],
            embeddings=[f.embedding for f in fragments],
            documents=[f.content for f in fragments],
            metadatas=[_fragment_metadata(f) for f in fragments],
        )

    def delete_document_fragments(self, document_id: str) -> None:
        self._collection.delete(where={"document_id": document_id})
        logger.info("Deleted fragments of document %s", document_id)

    def count_fragments(self, document_id: str) -> int:
        result = self._collection.get(where={"document_id": document_id}, include=[])
        return len(result.get("ids", []))

    def health_check(self) -> bool:
        try:
            self._collection.count()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
