"""
Storage — relational tables, fragment vectors, and object storage.

Public surface
--------------
- :class:`DocumentRepository` — document status store.
- :class:`CheckpointStore` — inter-stage checkpoints.
- :class:`RunRepository` — persisted run state.
- :class:`FragmentStoreBase` — abstract fragment backend (batching + compensation).
- :class:`ChromaFragmentStore` — default Chroma backend.
- :class:`ObjectStorage` and its local / Supabase implementations.
"""

from cognify_ingest.storage.base import FragmentStoreBase
from cognify_ingest.storage.checkpoints import CheckpointStore
from cognify_ingest.storage.documents import DocumentRepository
from cognify_ingest.storage.models import Document, DocumentStatus, Fragment, FragmentMetadata
from cognify_ingest.storage.object_storage import (
    LocalObjectStorage,
    ObjectStorage,
    SupabaseObjectStorage,
    get_object_storage,
)

__all__ = [
    "CheckpointStore",
    "ChromaFragmentStore",
    "Document",
    "DocumentRepository",
    "DocumentStatus",
    "Fragment",
    "FragmentMetadata",
    "FragmentStoreBase",
    "LocalObjectStorage",
    "ObjectStorage",
    "RunRepository",
    "SupabaseObjectStorage",
    "get_object_storage",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy imports; ``storage.runs`` depends on ``orchestration.state``, which imports this package."""
    if name == "ChromaFragmentStore":
        from cognify_ingest.storage.chroma_store import ChromaFragmentStore

        return ChromaFragmentStore
    if name == "RunRepository":
        from cognify_ingest.storage.runs import RunRepository

        return RunRepository
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
