"""Ingestion events and fire-and-forget publishers.

Wire format (camelCase, matching the upload layer)::

    {"name": "document.processed",
     "data": {"documentId": "...", "userId": "...", "fragmentCount": 12, "pageCount": 3}}
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, ClassVar

import requests
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class IngestionEvent(BaseModel):
    """Base for all events; subclasses set ``name``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: ClassVar[str]

    document_id: str
    user_id: str

    def to_envelope(self) -> dict[str, Any]:
        return {"name": self.name, "data": self.model_dump(mode="json", by_alias=True)}


class DocumentUploaded(IngestionEvent):
    """Starts the pipeline for a freshly uploaded document."""

    name: ClassVar[str] = "document.uploaded"

    storage_path: str
    filename: str


class DocumentProcessed(IngestionEvent):
    """Emitted once the document is ``ready``."""

    name: ClassVar[str] = "document.processed"

    fragment_count: int
    page_count: int | None = None


class DocumentFailed(IngestionEvent):
    """Emitted once the document is ``failed``."""

    name: ClassVar[str] = "document.failed"

    error: str


class EventPublisher(ABC):
    """Outbound notifications.  ``publish`` must never raise."""

    @abstractmethod
    def publish(self, event: IngestionEvent) -> None:
        ...

    def close(self) -> None:
        """Release resources; pending deliveries may be awaited."""


class LoggingEventPublisher(EventPublisher):
    """Only logs events; the default when no webhook is configured."""

    def publish(self, event: IngestionEvent) -> None:
        logger.info("Event %s: %s", event.name, event.model_dump(mode="json", by_alias=True))


class WebhookEventPublisher(EventPublisher):
    """POST each event envelope to *url* on a background thread.

    Delivery failures are logged and otherwise ignored.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: int = 10,
        session: requests.Session | None = None,
        executor: Executor | None = None,
    ) -> None:
        self.url = url
        self._timeout = timeout
        self._session = session or requests.Session()
        self._executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="event-publisher"
        )

    def publish(self, event: IngestionEvent) -> None:
        envelope = event.to_envelope()
        try:
            future = self._executor.submit(self._post, envelope)
        except RuntimeError as exc:  # executor already shut down
            logger.error("Could not schedule event %s: %s", event.name, exc)
            return
        future.add_done_callback(lambda f: self._log_outcome(event.name, f))

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def _post(self, envelope: dict[str, Any]) -> None:
        resp = self._session.post(self.url, json=envelope, timeout=self._timeout)
        resp.raise_for_status()

    @staticmethod
    def _log_outcome(name: str, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Event %s delivery failed: %s", name, exc)
        else:
            logger.info("Event %s delivered", name)
