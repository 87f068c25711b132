"""FastAPI application exposing the ingestion pipeline over HTTP."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, status

from cognify_ingest import __version__
from cognify_ingest.config import settings
from cognify_ingest.errors import RunNotFoundError
from cognify_ingest.orchestration.events import DocumentUploaded
from cognify_ingest.orchestration.factory import build_orchestrator
from cognify_ingest.orchestration.orchestrator import IngestionOrchestrator

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Cognify Ingest API",
    version=__version__,
    description="Receives upload events and runs the document ingestion pipeline.",
)


@lru_cache(maxsize=1)
def get_orchestrator() -> IngestionOrchestrator:
    """Process-wide orchestrator, built on first use."""
    return build_orchestrator()


def run_ingestion(orchestrator: IngestionOrchestrator, event: DocumentUploaded) -> None:
    """Background task body; the run records the failure itself."""
    try:
        orchestrator.handle_uploaded(event)
    except Exception:
        logger.exception("Ingestion failed for document %s", event.document_id)


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@app.post("/events/document.uploaded", status_code=status.HTTP_202_ACCEPTED)
async def document_uploaded(
    event: DocumentUploaded,
    background_tasks: BackgroundTasks,
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> dict[str, str]:
    """Accept an upload event and ingest the document in the background."""
    background_tasks.add_task(run_ingestion, orchestrator, event)
    logger.info("Accepted upload event for document %s", event.document_id)
    return {"status": "accepted", "documentId": event.document_id}


@app.get("/documents/{document_id}/status")
def document_status(
    document_id: str,
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> dict[str, str]:
    """Lifecycle status of a document: processing, ready or failed."""
    document = orchestrator.documents.get(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
    return {"documentId": document.id, "status": document.status.value}


@app.get("/runs/{document_id}")
def get_run(
    document_id: str,
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Persisted ingestion run, including per-stage attempts."""
    run = orchestrator.runs.get(document_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"No ingestion run for document {document_id}")
    return run.model_dump(mode="json")


@app.post("/runs/{document_id}/resume")
def resume_run(
    document_id: str,
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Resume an interrupted run synchronously and return its final state."""
    try:
        run = orchestrator.resume(document_id)
    except RunNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    except Exception:
        run = orchestrator.runs.get(document_id)
        if run is None:
            raise
    return run.model_dump(mode="json")
