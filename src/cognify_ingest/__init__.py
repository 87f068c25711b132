"""
cognify-ingest — document ingestion pipeline.

Turns an uploaded document into ordered, embedded text fragments:
extract → chunk → embed → persist → finalize, with per-stage retries,
checkpointed hand-off between stages and a document status state machine.
"""

__version__ = "0.1.0"
