"""Stage checkpoints — durable hand-off payloads between pipeline stages."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from cognify_ingest.errors import CheckpointNotFoundError
from cognify_ingest.storage.database import CheckpointRecord
from cognify_ingest.storage.models import utcnow

logger = logging.getLogger(__name__)


class CheckpointStore:
    """Payloads keyed by ``(document_id, stage_name)``; the last write wins."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def save(self, document_id: str, stage_name: str, payload: dict[str, Any]) -> None:
        with self._session_factory.begin() as session:
            record = session.scalars(
                select(CheckpointRecord).where(
                    CheckpointRecord.document_id == document_id,
                    CheckpointRecord.stage_name == stage_name,
                )
            ).one_or_none()
            if record is None:
                session.add(
                    CheckpointRecord(document_id=document_id, stage_name=stage_name, payload=payload)
                )
            else:
                record.payload = payload
                record.updated_at = utcnow()
        logger.info("Stored checkpoint %s for document %s", stage_name, document_id)

    def load(self, document_id: str, stage_name: str) -> dict[str, Any]:
        with self._session_factory() as session:
            payload = session.scalars(
                select(CheckpointRecord.payload).where(
                    CheckpointRecord.document_id == document_id,
                    CheckpointRecord.stage_name == stage_name,
                )
            ).one_or_none()
        if payload is None:
            raise CheckpointNotFoundError(document_id, stage_name)
        logger.info("Retrieved checkpoint %s for document %s", stage_name, document_id)
        return payload

    def stage_names(self, document_id: str) -> list[str]:
        with self._session_factory() as session:
            return list(
                session.scalars(
                    select(CheckpointRecord.stage_name)
                    .where(CheckpointRecord.document_id == document_id)
                    .order_by(CheckpointRecord.stage_name)
                )
            )

    def delete_all(self, document_id: str) -> int:
        """Remove every checkpoint of *document_id*; return how many were removed."""
        with self._session_factory.begin() as session:
            result = session.execute(
                delete(CheckpointRecord).where(CheckpointRecord.document_id == document_id)
            )
        logger.info("Cleaned up %d checkpoints for document %s", result.rowcount, document_id)
        return result.rowcount
