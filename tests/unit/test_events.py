"""Unit tests for ingestion events and publishers."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future
from unittest.mock import MagicMock

import pytest
import requests

from cognify_ingest.orchestration.events import (
    DocumentFailed,
    DocumentProcessed,
    DocumentUploaded,
    LoggingEventPublisher,
    WebhookEventPublisher,
)


class ImmediateExecutor(Executor):
    """Runs submitted work synchronously so callbacks fire before assertions."""

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


class TestEventModels:
    def test_uploaded_accepts_camel_case(self) -> None:
        event = DocumentUploaded.model_validate(
            {
                "documentId": "doc-1",
                "userId": "user-1",
                "storagePath": "user-1/a.pdf",
                "filename": "a.pdf",
            }
        )
        assert event.document_id == "doc-1"
        assert event.storage_path == "user-1/a.pdf"

    def test_processed_envelope(self) -> None:
        event = DocumentProcessed(
            document_id="doc-1", user_id="user-1", fragment_count=12, page_count=3
        )
        assert event.to_envelope() == {
            "name": "document.processed",
            "data": {
                "documentId": "doc-1",
                "userId": "user-1",
                "fragmentCount": 12,
                "pageCount": 3,
            },
        }

    def test_failed_envelope(self) -> None:
        event = DocumentFailed(document_id="doc-1", user_id="user-1", error="No text")
        envelope = event.to_envelope()
        assert envelope["name"] == "document.failed"
        assert envelope["data"]["error"] == "No text"


class TestWebhookEventPublisher:
    def _event(self) -> DocumentFailed:
        return DocumentFailed(document_id="doc-1", user_id="user-1", error="boom")

    def test_posts_envelope(self) -> None:
        session = MagicMock()
        publisher = WebhookEventPublisher(
            "https://hooks.example.com/ingest",
            timeout=5,
            session=session,
            executor=ImmediateExecutor(),
        )
        publisher.publish(self._event())

        session.post.assert_called_once_with(
            "https://hooks.example.com/ingest",
            json=self._event().to_envelope(),
            timeout=5,
        )

    def test_delivery_failure_is_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("refused")
        publisher = WebhookEventPublisher(
            "https://hooks.example.com/ingest", session=session, executor=ImmediateExecutor()
        )

        with caplog.at_level(logging.ERROR):
            publisher.publish(self._event())

        assert "delivery failed" in caplog.text

    def test_http_error_status_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        session = MagicMock()
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError("500")
        publisher = WebhookEventPublisher(
            "https://hooks.example.com/ingest", session=session, executor=ImmediateExecutor()
        )

        with caplog.at_level(logging.ERROR):
            publisher.publish(self._event())

        assert "document.failed delivery failed" in caplog.text

    def test_publish_after_close_does_not_raise(self) -> None:
        publisher = WebhookEventPublisher("https://hooks.example.com/ingest", session=MagicMock())
        publisher.close()
        publisher.publish(self._event())


def test_logging_publisher(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO):
        LoggingEventPublisher().publish(
            DocumentProcessed(document_id="doc-1", user_id="user-1", fragment_count=1)
        )
    assert "document.processed" in caplog.text
