"""Unit tests for fragment persistence: batching, compensation, Chroma backend."""

from __future__ import annotations

from collections.abc import Sequence
from unittest.mock import MagicMock

import pytest

from cognify_ingest.errors import PersistenceError, VectorCountMismatchError
from cognify_ingest.storage.base import FragmentStoreBase
from cognify_ingest.storage.chroma_store import ChromaFragmentStore
from cognify_ingest.storage.documents import DocumentRepository
from cognify_ingest.storage.models import Fragment, build_fragments


# ── In-memory backend ───────────────────────────────────────────────────


class InMemoryFragmentStore(FragmentStoreBase):
    """Dict-backed fragment table; optionally fails a given batch."""

    def __init__(self, documents=None, *, batch_size: int = 50, fail_on_batch: int | None = None):
        super().__init__(documents, batch_size=batch_size)
        self.rows: dict[str, Fragment] = {}
        self.batch_sizes: list[int] = []
        self._fail_on_batch = fail_on_batch

    def insert_batch(self, fragments: Sequence[Fragment]) -> None:
        self.batch_sizes.append(len(fragments))
        if self._fail_on_batch is not None and len(self.batch_sizes) == self._fail_on_batch:
            raise ConnectionError("connection reset by peer")
        for fragment in fragments:
            self.rows[fragment.id] = fragment

    def delete_document_fragments(self, document_id: str) -> None:
        self.rows = {k: v for k, v in self.rows.items() if v.document_id != document_id}

    def count_fragments(self, document_id: str) -> int:
        return sum(1 for f in self.rows.values() if f.document_id == document_id)


def _data(n: int) -> tuple[list[str], list[list[float]]]:
    return [f"chunk {i}" for i in range(n)], [[float(i), 0.5] for i in range(n)]


# ── build_fragments ─────────────────────────────────────────────────────


class TestBuildFragments:
    def test_indices_are_contiguous(self) -> None:
        chunks, vectors = _data(3)
        fragments = build_fragments("doc-1", chunks, vectors)
        assert [f.chunk_index for f in fragments] == [0, 1, 2]
        assert [f.id for f in fragments] == ["doc-1_0", "doc-1_1", "doc-1_2"]
        assert fragments[1].content == "chunk 1"
        assert fragments[1].embedding == [1.0, 0.5]
        assert fragments[2].metadata.total_chunks == 3
        assert fragments[2].metadata.length == len("chunk 2")

    def test_mismatch_is_rejected(self) -> None:
        chunks, vectors = _data(3)
        with pytest.raises(VectorCountMismatchError):
            build_fragments("doc-1", chunks, vectors[:2])


# ── persist ─────────────────────────────────────────────────────────────


class TestPersist:
    def test_writes_in_batches_of_fifty(self) -> None:
        store = InMemoryFragmentStore()
        chunks, vectors = _data(120)

        assert store.persist("doc-1", chunks, vectors) == 120
        assert store.batch_sizes == [50, 50, 20]
        assert store.count_fragments("doc-1") == 120

    def test_mismatch_writes_nothing(self) -> None:
        store = InMemoryFragmentStore()
        chunks, vectors = _data(3)
        with pytest.raises(VectorCountMismatchError):
            store.persist("doc-1", chunks, vectors[:1])
        assert store.batch_sizes == []

    def test_failed_second_batch_leaves_no_fragments(
        self, documents: DocumentRepository, make_document
    ) -> None:
        make_document("doc-1")
        store = InMemoryFragmentStore(documents, fail_on_batch=2)
        chunks, vectors = _data(150)

        with pytest.raises(PersistenceError, match="Failed to insert chunks"):
            store.persist("doc-1", chunks, vectors)

        assert store.batch_sizes == [50, 50]
        assert store.count_fragments("doc-1") == 0
        # The compensating action also removes the document row.
        assert documents.get("doc-1") is None

    def test_compensation_only_touches_the_failing_document(self) -> None:
        store = InMemoryFragmentStore()
        store.persist("doc-2", *_data(5))

        failing = InMemoryFragmentStore(fail_on_batch=1)
        failing.rows = dict(store.rows)
        with pytest.raises(PersistenceError):
            failing.persist("doc-1", *_data(5))
        assert failing.count_fragments("doc-2") == 5

    def test_compensation_failure_still_raises_insert_error(self) -> None:
        documents = MagicMock(spec=DocumentRepository)
        documents.delete.side_effect = RuntimeError("db down")
        store = InMemoryFragmentStore(documents, fail_on_batch=1)

        with pytest.raises(PersistenceError) as exc_info:
            store.persist("doc-1", *_data(3))
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        documents.delete.assert_called_once_with("doc-1")

    def test_retry_after_compensation_does_not_duplicate(self) -> None:
        store = InMemoryFragmentStore(fail_on_batch=2)
        chunks, vectors = _data(60)
        with pytest.raises(PersistenceError):
            store.persist("doc-1", chunks, vectors)

        assert store.persist("doc-1", chunks, vectors) == 60
        assert store.count_fragments("doc-1") == 60

    def test_invalid_batch_size(self) -> None:
        with pytest.raises(ValueError):
            InMemoryFragmentStore(batch_size=0)


# ── Chroma backend ──────────────────────────────────────────────────────


class TestChromaFragmentStore:
    def test_upserts_with_flat_metadata(self) -> None:
        collection = MagicMock()
        store = ChromaFragmentStore(collection, batch_size=2)

        assert store.persist("doc-1", *_data(3)) == 3
        assert collection.upsert.call_count == 2

        first = collection.upsert.call_args_list[0].kwargs
        assert first["ids"] == ["doc-1_0", "doc-1_1"]
        assert first["documents"] == ["chunk 0", "chunk 1"]
        assert first["embeddings"] == [[0.0, 0.5], [1.0, 0.5]]
        assert first["metadatas"][1] == {
            "document_id": "doc-1",
            "chunk_index": 1,
            "length": 7,
            "position": 1,
            "total_chunks": 3,
        }

    def test_failure_deletes_by_document_id(self) -> None:
        collection = MagicMock()
        collection.upsert.side_effect = [None, RuntimeError("chroma unavailable")]
        store = ChromaFragmentStore(collection, batch_size=2)

        with pytest.raises(PersistenceError):
            store.persist("doc-1", *_data(3))
        collection.delete.assert_called_once_with(where={"document_id": "doc-1"})

    def test_count_fragments(self) -> None:
        collection = MagicMock()
        collection.get.return_value = {"ids": ["doc-1_0", "doc-1_1"]}
        store = ChromaFragmentStore(collection)

        assert store.count_fragments("doc-1") == 2
        collection.get.assert_called_once_with(where={"document_id": "doc-1"}, include=[])

    def test_health_check(self) -> None:
        collection = MagicMock()
        assert ChromaFragmentStore(collection).health_check() is True
        collection.count.side_effect = ConnectionError("down")
        assert ChromaFragmentStore(collection).health_check() is False
