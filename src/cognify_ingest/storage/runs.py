"""Run repository — persists the ingestion run state machine."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from cognify_ingest.orchestration.state import IngestionRun, RunState
from cognify_ingest.storage.database import IngestionRunRecord


class RunRepository:
    """Stores one :class:`IngestionRun` per document as a JSON payload."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def save(self, run: IngestionRun) -> None:
        with self._session_factory.begin() as session:
            session.merge(
                IngestionRunRecord(
                    document_id=run.document_id,
                    state=run.state.value,
                    payload=run.model_dump(mode="json"),
                    updated_at=run.updated_at,
                )
            )

    def get(self, document_id: str) -> IngestionRun | None:
        with self._session_factory() as session:
            record = session.get(IngestionRunRecord, document_id)
            return IngestionRun.model_validate(record.payload) if record is not None else None

    def list_active(self) -> list[IngestionRun]:
        """Runs that have not reached ``ready`` or ``failed``, oldest first."""
        terminal = (RunState.READY.value, RunState.FAILED.value)
        with self._session_factory() as session:
            payloads = session.scalars(
                select(IngestionRunRecord.payload)
                .where(IngestionRunRecord.state.not_in(terminal))
                .order_by(IngestionRunRecord.updated_at)
            ).all()
        return [IngestionRun.model_validate(payload) for payload in payloads]
