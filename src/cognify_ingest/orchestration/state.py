"""Run state — the persisted state machine of one ingestion run.

A run walks through::

    extracting → chunking → embedding → persisting → finalizing → cleanup → ready

and can drop to ``failed`` from any non-terminal state.  No state is
re-entered.  The :class:`IngestionRun` is saved after every transition so
a crashed run can be resumed from the stage its state maps to.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from cognify_ingest.errors import InvalidStatusTransitionError
from cognify_ingest.storage.models import utcnow


class RunState(str, Enum):
    EXTRACTING = "extracting"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    PERSISTING = "persisting"
    FINALIZING = "finalizing"
    CLEANUP = "cleanup"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.READY, RunState.FAILED)


class StageName(str, Enum):
    """Retryable units of work, in execution order."""

    EXTRACT_AND_CHUNK = "extract-and-chunk"
    GENERATE_EMBEDDINGS = "generate-embeddings"
    STORE_CHUNKS = "store-chunks"
    FINALIZE = "finalize"
    CLEANUP = "cleanup"


# Checkpoint names written by the stages.
CHUNKS_CHECKPOINT = "chunks"
EMBEDDINGS_CHECKPOINT = "embeddings"

# Outbound event names recorded on the run once published.
PROCESSED_EVENT = "document.processed"
FAILED_EVENT = "document.failed"

_TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    RunState.EXTRACTING: frozenset({RunState.CHUNKING, RunState.FAILED}),
    RunState.CHUNKING: frozenset({RunState.EMBEDDING, RunState.FAILED}),
    RunState.EMBEDDING: frozenset({RunState.PERSISTING, RunState.FAILED}),
    RunState.PERSISTING: frozenset({RunState.FINALIZING, RunState.FAILED}),
    RunState.FINALIZING: frozenset({RunState.CLEANUP, RunState.FAILED}),
    RunState.CLEANUP: frozenset({RunState.READY, RunState.FAILED}),
    RunState.READY: frozenset(),
    RunState.FAILED: frozenset(),
}

# Which stage a run in a given state resumes with.
RESUME_STAGE: dict[RunState, StageName] = {
    RunState.EXTRACTING: StageName.EXTRACT_AND_CHUNK,
    RunState.CHUNKING: StageName.EXTRACT_AND_CHUNK,
    RunState.EMBEDDING: StageName.GENERATE_EMBEDDINGS,
    RunState.PERSISTING: StageName.STORE_CHUNKS,
    RunState.FINALIZING: StageName.FINALIZE,
    RunState.CLEANUP: StageName.CLEANUP,
}


def can_transition(current: RunState, target: RunState) -> bool:
    return target in _TRANSITIONS[current]


class IngestionRun(BaseModel):
    """Everything needed to continue an ingestion run after a restart.

    Attributes
    ----------
    document_id / user_id / storage_path / filename:
        Copied from the ``document.uploaded`` event that started the run.
    state:
        Current :class:`RunState`.
    completed_stages:
        Stages that finished successfully, in order.
    attempts:
        Attempts made per stage name (including the successful one).
    fragment_count / page_count:
        Results of ``extract-and-chunk``.
    embedding_count:
        Result of ``generate-embeddings``.
    stored_count:
        Rows written by ``store-chunks``.
    events_emitted:
        Outbound event names already published for this run.
    error:
        Human-readable cause once the run has failed.
    """

    document_id: str
    user_id: str
    storage_path: str
    filename: str
    state: RunState = RunState.EXTRACTING
    completed_stages: list[StageName] = Field(default_factory=list)
    attempts: dict[str, int] = Field(default_factory=dict)
    fragment_count: int | None = None
    page_count: int | None = None
    embedding_count: int | None = None
    stored_count: int | None = None
    events_emitted: list[str] = Field(default_factory=list)
    error: str | None = None
    started_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def resume_stage(self) -> StageName | None:
        return RESUME_STAGE.get(self.state)

    def advance(self, target: RunState) -> None:
        """Move to *target*; staying in the current state is a no-op."""
        if target == self.state:
            return
        if not can_transition(self.state, target):
            raise InvalidStatusTransitionError(self.state.value, target.value, subject="run")
        self.state = target
        self.updated_at = utcnow()

    def record_attempt(self, stage: StageName) -> int:
        self.attempts[stage.value] = self.attempts.get(stage.value, 0) + 1
        self.updated_at = utcnow()
        return self.attempts[stage.value]

    def complete_stage(self, stage: StageName, next_state: RunState) -> None:
        if stage not in self.completed_stages:
            self.completed_stages.append(stage)
        self.advance(next_state)

    def fail(self, error: BaseException | str) -> None:
        self.error = str(error) or type(error).__name__
        self.advance(RunState.FAILED)
