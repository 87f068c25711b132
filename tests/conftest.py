"""Shared pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from cognify_ingest.storage.checkpoints import CheckpointStore
from cognify_ingest.storage.database import (
    create_database_engine,
    create_session_factory,
    init_db,
)
from cognify_ingest.storage.documents import DocumentRepository
from cognify_ingest.storage.models import Document
from cognify_ingest.storage.runs import RunRepository


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


@pytest.fixture()
def engine() -> Iterator[Engine]:
    """Fresh in-memory SQLite database per test."""
    engine = create_database_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture()
def documents(session_factory: sessionmaker[Session]) -> DocumentRepository:
    return DocumentRepository(session_factory)


@pytest.fixture()
def checkpoints(session_factory: sessionmaker[Session]) -> CheckpointStore:
    return CheckpointStore(session_factory)


@pytest.fixture()
def runs(session_factory: sessionmaker[Session]) -> RunRepository:
    return RunRepository(session_factory)


@pytest.fixture()
def make_document(documents: DocumentRepository) -> Callable[..., Document]:
    """Insert a ``processing`` document row and return it."""

    def _make(document_id: str = "doc-1", **overrides) -> Document:
        fields = {
            "id": document_id,
            "user_id": "user-1",
            "filename": "report.pdf",
            "storage_path": f"user-1/{document_id}.pdf",
            "file_size_bytes": 2048,
        }
        fields.update(overrides)
        return documents.create(Document(**fields))

    return _make
