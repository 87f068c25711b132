"""Document status store — the single source of truth for a document's state."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, update
from sqlalchemy.orm import Session, sessionmaker

from cognify_ingest.errors import DocumentNotFoundError, InvalidStatusTransitionError
from cognify_ingest.storage.database import DocumentRecord
from cognify_ingest.storage.models import Document, DocumentStatus, utcnow

logger = logging.getLogger(__name__)


class DocumentRepository:
    """Reads and mutates rows of the ``documents`` table.

    Status changes go through a conditional ``UPDATE … WHERE status =
    'processing'``, so a document leaves ``processing`` at most once even
    if two writers race.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def create(self, document: Document) -> Document:
        """Insert a new document row (normally done by the upload layer)."""
        with self._session_factory.begin() as session:
            session.add(
                DocumentRecord(
                    id=document.id,
                    user_id=document.user_id,
                    filename=document.filename,
                    storage_path=document.storage_path,
                    status=document.status.value,
                    file_size_bytes=document.file_size_bytes,
                    page_count=document.page_count,
                    created_at=document.created_at,
                    updated_at=document.updated_at,
                )
            )
        return document

    def get(self, document_id: str) -> Document | None:
        with self._session_factory() as session:
            record = session.get(DocumentRecord, document_id)
            return Document.model_validate(record) if record is not None else None

    def mark_ready(self, document_id: str, page_count: int | None = None) -> None:
        self._transition(document_id, DocumentStatus.READY, page_count=page_count)
        logger.info("Document %s status updated to ready", document_id)

    def mark_failed(self, document_id: str) -> None:
        self._transition(document_id, DocumentStatus.FAILED)
        logger.info("Document %s status updated to failed", document_id)

    def delete(self, document_id: str) -> bool:
        """Delete the document row; return ``True`` if a row was removed."""
        with self._session_factory.begin() as session:
            result = session.execute(delete(DocumentRecord).where(DocumentRecord.id == document_id))
        deleted = bool(result.rowcount)
        if deleted:
            logger.info("Deleted document %s", document_id)
        return deleted

    def _transition(self, document_id: str, target: DocumentStatus, **values: Any) -> None:
        with self._session_factory.begin() as session:
            result = session.execute(
                update(DocumentRecord)
                .where(
                    DocumentRecord.id == document_id,
                    DocumentRecord.status == DocumentStatus.PROCESSING.value,
                )
                .values(status=target.value, updated_at=utcnow(), **values)
            )
            if result.rowcount == 1:
                return

            record = session.get(DocumentRecord, document_id)
            if record is None:
                raise DocumentNotFoundError(document_id)
            raise InvalidStatusTransitionError(record.status, target.value)
