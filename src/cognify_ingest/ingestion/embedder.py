"""Embedding generation — batched, paced calls to the embedding provider."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from cognify_ingest.config import Settings, settings
from cognify_ingest.errors import EmbeddingError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


def get_embeddings(config: Settings = settings) -> Embeddings:
    """Return the configured LangChain embedding model.

    ``openai`` (default) talks to the OpenAI embeddings API, or to any
    OpenAI-compatible endpoint when ``openai_base_url`` is set.
    ``huggingface`` runs a local sentence-transformer instead.
    """
    if config.embedding_provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=config.embedding_model)

    if config.embedding_provider != "openai":
        raise ValueError(
            f"Unsupported embedding_provider={config.embedding_provider!r}. "
            "Choose from: openai, huggingface."
        )

    from langchain_openai import OpenAIEmbeddings

    kwargs: dict = {
        "model": config.embedding_model,
        "api_key": config.openai_api_key,
        # One provider request per EmbeddingClient batch.
        "chunk_size": config.embedding_batch_size,
        "max_retries": config.embedding_request_max_retries,
    }
    if config.openai_base_url:
        logger.info("Using OpenAI-compatible embeddings endpoint: %s", config.openai_base_url)
        kwargs["base_url"] = config.openai_base_url
    return OpenAIEmbeddings(**kwargs)


class EmbeddingClient:
    """Turns strings into fixed-dimension vectors, preserving order.

    Parameters
    ----------
    embeddings:
        Any LangChain ``Embeddings`` implementation.  When *None*, the
        model from :func:`get_embeddings` is used.
    batch_size:
        Maximum number of strings per provider call in
        :meth:`embed_in_batches`.
    batch_delay:
        Seconds to wait between consecutive batches (never after the last).
    dimensions:
        Expected vector length; ``None`` disables the check.
    sleep:
        Injected for tests.
    """

    def __init__(
        self,
        embeddings: Embeddings | None = None,
        *,
        batch_size: int = settings.embedding_batch_size,
        batch_delay: float = settings.embedding_batch_delay_seconds,
        dimensions: int | None = settings.embedding_dimensions,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size ({batch_size}) must be > 0")
        self._embeddings = embeddings if embeddings is not None else get_embeddings()
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.dimensions = dimensions
        self._sleep = sleep

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed one batch; ``result[i]`` is the vector of ``texts[i]``.

        Any provider failure fails the whole batch with :class:`EmbeddingError`.
        """
        if not texts:
            return []

        try:
            vectors = self._embeddings.embed_documents(list(texts))
        except Exception as exc:
            logger.error("Embedding provider error: %s", exc)
            raise EmbeddingError(f"Failed to generate embeddings: {exc}") from exc

        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Failed to generate embeddings: provider returned {len(vectors)} "
                f"vectors for {len(texts)} inputs"
            )
        if self.dimensions is not None:
            for index, vector in enumerate(vectors):
                if len(vector) != self.dimensions:
                    raise EmbeddingError(
                        f"Failed to generate embeddings: vector {index} has "
                        f"{len(vector)} dimensions, expected {self.dimensions}"
                    )
        return [[float(x) for x in vector] for vector in vectors]

    def embed_in_batches(
        self,
        texts: Sequence[str],
        batch_size: int | None = None,
    ) -> list[list[float]]:
        """Embed *texts* in consecutive batches, pausing between batches.

        A failing batch aborts the call; vectors from earlier batches are
        discarded with it.
        """
        if batch_size is None:
            batch_size = self.batch_size
        elif batch_size <= 0:
            raise ValueError(f"batch_size ({batch_size}) must be > 0")
        total_batches = math.ceil(len(texts) / batch_size)
        all_embeddings: list[list[float]] = []

        for number, start in enumerate(range(0, len(texts), batch_size), 1):
            batch = texts[start : start + batch_size]
            logger.info("Generating embeddings for batch %d/%d", number, total_batches)
            all_embeddings.extend(self.embed(batch))

            if start + batch_size < len(texts):
                self._sleep(self.batch_delay)

        return all_embeddings
