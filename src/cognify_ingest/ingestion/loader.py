"""Text extraction — thin wrappers around LangChain document loaders."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import PurePosixPath
from urllib.parse import urlparse

import requests
from langchain_community.document_loaders import PyPDFLoader, TextLoader

from cognify_ingest.errors import ExtractionError

logger = logging.getLogger(__name__)

PLAIN_TEXT_SUFFIXES = frozenset({".txt", ".md", ".markdown"})


@dataclass(frozen=True)
class ExtractedText:
    """Plain text of a source document and its page count."""

    text: str
    page_count: int


class TextExtractor(ABC):
    """Turns a (time-limited) document URL or path into plain text."""

    @abstractmethod
    def extract_text(self, url: str) -> ExtractedText:
        """Return the document's text.

        Raises
        ------
        ExtractionError
            When the source holds no machine-readable text.
        """
        ...


class PdfTextExtractor(TextExtractor):
    """Extract text from a PDF with ``PyPDFLoader`` (one document per page)."""

    def extract_text(self, url: str) -> ExtractedText:
        logger.info("Extracting text from PDF")
        pages = PyPDFLoader(url).load()
        text = "\n\n".join(page.page_content for page in pages).strip()

        if not text:
            raise ExtractionError(
                "No text found in PDF. Document may be scanned or image-based."
            )

        logger.info("Extracted %d characters from %d pages", len(text), len(pages))
        return ExtractedText(text=text, page_count=len(pages))


class PlainTextExtractor(TextExtractor):
    """Extract text from ``.txt`` / ``.md`` sources, local or over HTTP."""

    def __init__(self, *, timeout: int = 60) -> None:
        self._timeout = timeout

    def extract_text(self, url: str) -> ExtractedText:
        if urlparse(url).scheme in ("http", "https"):
            resp = requests.get(url, timeout=self._timeout)
            resp.raise_for_status()
            text = resp.text
        else:
            text = "\n\n".join(doc.page_content for doc in TextLoader(url, encoding="utf-8").load())

        text = text.strip()
        if not text:
            raise ExtractionError("No text found in document.")
        return ExtractedText(text=text, page_count=1)


class DocumentTextExtractor(TextExtractor):
    """Dispatch on the source's file suffix; anything unrecognised is read as PDF."""

    def __init__(
        self,
        pdf: TextExtractor | None = None,
        plain_text: TextExtractor | None = None,
    ) -> None:
        self._pdf = pdf or PdfTextExtractor()
        self._plain_text = plain_text or PlainTextExtractor()

    def extract_text(self, url: str) -> ExtractedText:
        # Signed URLs carry a token in the query string; only the path matters.
        suffix = PurePosixPath(urlparse(url).path or url).suffix.lower()
        if suffix in PLAIN_TEXT_SUFFIXES:
            return self._plain_text.extract_text(url)
        return self._pdf.extract_text(url)
