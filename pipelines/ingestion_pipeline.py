"""KFP v2 pipeline — Ingest one uploaded document.

Triggered once per ``document.uploaded`` event.  The single step runs the
staged ingestion inside its container:

    extract-and-chunk → generate-embeddings → store-chunks → finalize → cleanup

Per-stage retries happen inside the step; the KFP-level retry only
covers a lost container, in which case the persisted run is resumed.

Compile
-------
    python -m pipelines.ingestion_pipeline --compile
"""

from kfp import compiler, dsl

from pipelines.components.process import process_uploaded_document


@dsl.pipeline(
    name="document-ingestion-pipeline",
    description=(
        "Extract, chunk, embed and store one uploaded document, then mark "
        "it ready (or failed)."
    ),
)
def ingestion_pipeline(
    document_id: str,
    user_id: str,
    storage_path: str,
    filename: str,
) -> None:
    """Process a single uploaded document.

    Parameters
    ----------
    document_id:
        Id of the document row.
    user_id:
        Owner of the document.
    storage_path:
        Object-storage pointer of the uploaded file.
    filename:
        Declared filename.
    """
    process_task = process_uploaded_document(
        document_id=document_id,
        user_id=user_id,
        storage_path=storage_path,
        filename=filename,
    )
    process_task.set_retry(num_retries=1)


def submit_run(document_id: str, user_id: str, storage_path: str, filename: str) -> str:
    """Start a pipeline run for one document on the configured KFP endpoint."""
    from kfp import Client

    from cognify_ingest.config import settings

    client = Client(host=settings.kfp_host, namespace=settings.kfp_namespace)
    result = client.create_run_from_pipeline_func(
        ingestion_pipeline,
        arguments={
            "document_id": document_id,
            "user_id": user_id,
            "storage_path": storage_path,
            "filename": filename,
        },
        namespace=settings.kfp_namespace,
    )
    return result.run_id


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Document ingestion pipeline")
    parser.add_argument(
        "--compile",
        action="store_true",
        help="Compile pipeline to YAML",
    )
    parser.add_argument(
        "--output",
        default="pipelines/compiled/ingestion_pipeline.yaml",
        help="Output path for compiled YAML",
    )
    parser.add_argument(
        "--submit",
        nargs=4,
        metavar=("DOCUMENT_ID", "USER_ID", "STORAGE_PATH", "FILENAME"),
        help="Submit a run for one document to KFP_HOST",
    )
    args = parser.parse_args()

    if args.compile:
        compiler.Compiler().compile(ingestion_pipeline, args.output)
        print(f"Pipeline compiled → {args.output}")
    if args.submit:
        print(f"Submitted run {submit_run(*args.submit)}")
