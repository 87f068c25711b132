"""KFP v2 components — each file exports one @dsl.component."""

from pipelines.components.process import process_uploaded_document
from pipelines.components.resume import resume_incomplete_runs

__all__ = [
    "process_uploaded_document",
    "resume_incomplete_runs",
]
