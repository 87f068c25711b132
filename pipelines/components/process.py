"""KFP v2 component — Ingest one uploaded document.

Runs the full staged pipeline (extract-and-chunk → generate-embeddings →
store-chunks → finalize → cleanup) for a single ``document.uploaded``
event inside the component container.  All connection details come from
environment variables read by ``cognify_ingest.config.Settings``.

A redelivered event for a run that is still in flight resumes it, so the
step can be retried by KFP without duplicating fragments.

Local testing
-------------
    from pipelines.components.process import process_uploaded_document
    process_uploaded_document.python_func(
        document_id="doc-1",
        user_id="user-1",
        storage_path="user-1/report.pdf",
        filename="report.pdf",
        metrics=_FakeArtifact("/tmp/metrics"),
    )
"""

from kfp import dsl


@dsl.component(
    base_image="python:3.11-slim",
    packages_to_install=["cognify-ingest"],
)
def process_uploaded_document(
    document_id: str,
    user_id: str,
    storage_path: str,
    filename: str,
    metrics: dsl.Output[dsl.Metrics],
) -> str:
    """Extract, chunk, embed and store one document.

    Parameters
    ----------
    document_id:
        Id of the document row (status ``processing``).
    user_id:
        Owner of the document.
    storage_path:
        Object-storage pointer of the uploaded file.
    filename:
        Declared filename; ``.txt`` / ``.md`` select the plain-text extractor.
    metrics:
        Output Metrics artifact with run statistics.

    Returns
    -------
    str
        Summary, e.g. ``"Document doc-1 ready: 12 fragments from 3 pages"``.
    """
    import logging
    import time

    from cognify_ingest.orchestration.events import DocumentUploaded
    from cognify_ingest.orchestration.factory import build_orchestrator

    logging.basicConfig(level=logging.INFO)
    log = logging.getLogger("process_uploaded_document")

    event = DocumentUploaded(
        document_id=document_id,
        user_id=user_id,
        storage_path=storage_path,
        filename=filename,
    )
    orchestrator = build_orchestrator()

    t0 = time.time()
    try:
        run = orchestrator.handle_uploaded(event)
    except Exception:
        metrics.log_metric("state", "failed")
        metrics.log_metric("elapsed_seconds", round(time.time() - t0, 2))
        raise
    finally:
        orchestrator.events.close()
    elapsed = time.time() - t0

    # KFP Metrics
    metrics.log_metric("state", run.state.value)
    metrics.log_metric("fragments", run.stored_count or 0)
    metrics.log_metric("pages", run.page_count or 0)
    metrics.log_metric("elapsed_seconds", round(elapsed, 2))

    msg = (
        f"Document {document_id} {run.state.value}: "
        f"{run.stored_count or 0} fragments from {run.page_count or 0} pages"
    )
    log.info(msg)
    return msg
