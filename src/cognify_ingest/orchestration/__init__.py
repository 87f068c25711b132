"""
Orchestration — the staged, checkpointed ingestion run.

Public API
----------
- :class:`IngestionOrchestrator` — drives a run from ``uploaded`` to a terminal state.
- :func:`build_orchestrator` — production wiring from settings.
- :class:`IngestionRun` / :class:`RunState` / :class:`StageName` — the persisted state machine.
- :class:`RetryPolicy` — per-stage attempts and backoff.
- Event models and publishers.
"""

from cognify_ingest.orchestration.events import (
    DocumentFailed,
    DocumentProcessed,
    DocumentUploaded,
    EventPublisher,
    IngestionEvent,
    LoggingEventPublisher,
    WebhookEventPublisher,
)
from cognify_ingest.orchestration.retry import RetryPolicy, run_with_retries
from cognify_ingest.orchestration.state import IngestionRun, RunState, StageName

__all__ = [
    "DocumentFailed",
    "DocumentProcessed",
    "DocumentUploaded",
    "EventPublisher",
    "IngestionEvent",
    "IngestionOrchestrator",
    "IngestionRun",
    "LoggingEventPublisher",
    "RetryPolicy",
    "RunState",
    "StageName",
    "WebhookEventPublisher",
    "build_orchestrator",
    "run_with_retries",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy imports; the orchestrator needs ``storage.runs``, which imports ``orchestration.state``."""
    if name == "IngestionOrchestrator":
        from cognify_ingest.orchestration.orchestrator import IngestionOrchestrator

        return IngestionOrchestrator
    if name == "build_orchestrator":
        from cognify_ingest.orchestration.factory import build_orchestrator

        return build_orchestrator
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
