"""
Ingestion — text extraction, chunking, and embedding.

Pure and provider-facing building blocks used by the pipeline stages in
:mod:`cognify_ingest.orchestration`.
"""

from cognify_ingest.ingestion.chunker import ChunkingStats, chunk_text, chunking_stats

__all__ = [
    "ChunkingStats",
    "chunk_text",
    "chunking_stats",
]
