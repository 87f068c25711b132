"""Abstract base class for fragment-store backends.

Adding a new backend (pgvector, Qdrant …) only requires subclassing
:class:`FragmentStoreBase` and implementing the three abstract methods.
Batching and the all-or-nothing compensation live here and are shared by
every backend.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

from cognify_ingest.config import settings
from cognify_ingest.errors import PersistenceError
from cognify_ingest.storage.models import Fragment, build_fragments

if TYPE_CHECKING:
    from cognify_ingest.storage.documents import DocumentRepository

logger = logging.getLogger(__name__)


class FragmentStoreBase(ABC):
    """Backend-agnostic fragment persistence.

    Parameters
    ----------
    documents:
        Document repository used by the compensating action.  When a batch
        insert fails the document row is deleted along with its fragments.
        ``None`` limits compensation to the fragment rows.
    batch_size:
        Maximum number of rows per insert call.
    """

    def __init__(
        self,
        documents: DocumentRepository | None = None,
        *,
        batch_size: int = settings.fragment_insert_batch_size,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size ({batch_size}) must be > 0")
        self._documents = documents
        self.batch_size = batch_size

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def insert_batch(self, fragments: Sequence[Fragment]) -> None:
        """Write *fragments* atomically: all rows or none."""
        ...

    @abstractmethod
    def delete_document_fragments(self, document_id: str) -> None:
        """Delete every fragment row of *document_id*."""
        ...

    @abstractmethod
    def count_fragments(self, document_id: str) -> int:
        """Return the number of stored fragment rows for *document_id*."""
        ...

    # -- shared behaviour -----------------------------------------------------

    def persist(
        self,
        document_id: str,
        chunks: Sequence[str],
        vectors: Sequence[Sequence[float]],
    ) -> int:
        """Store ``chunks[i]`` with ``vectors[i]`` at index ``i``.

        Returns
        -------
        int
            Number of rows inserted.

        Raises
        ------
        VectorCountMismatchError
            When ``len(chunks) != len(vectors)``; nothing is written.
        PersistenceError
            When a batch fails.  The document's fragments (and the document
            row) have already been deleted when this is raised.
        """
        fragments = build_fragments(document_id, chunks, vectors)
        total_batches = math.ceil(len(fragments) / self.batch_size)
        inserted = 0

        for number, start in enumerate(range(0, len(fragments), self.batch_size), 1):
            batch = fragments[start : start + self.batch_size]
            try:
                self.insert_batch(batch)
            except Exception as exc:
                logger.error(
                    "Insert batch %d/%d failed for document %s: %s",
                    number, total_batches, document_id, exc,
                )
                self._compensate(document_id)
                raise PersistenceError(f"Failed to insert chunks: {exc}") from exc

            inserted += len(batch)
            logger.info(
                "Inserted batch %d/%d (%d/%d chunks total)",
                number, total_batches, inserted, len(fragments),
            )
        return inserted

    def _compensate(self, document_id: str) -> None:
        # Failures here are logged; the caller still raises the insert error.
        try:
            self.delete_document_fragments(document_id)
        except Exception:
            logger.exception("Failed to delete fragments of document %s", document_id)

        if self._documents is None:
            return
        try:
            self._documents.delete(document_id)
        except Exception:
            logger.exception("Failed to delete document %s after insert failure", document_id)
