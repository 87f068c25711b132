"""KFP v2 pipeline — resume interrupted ingestion runs (schedule as a recurring run)."""

from kfp import compiler, dsl

from pipelines.components.resume import resume_incomplete_runs


@dsl.pipeline(
    name="ingestion-recovery-pipeline",
    description="Resume every ingestion run left in a non-terminal state.",
)
def recovery_pipeline() -> None:
    """Single step: resume incomplete runs."""
    resume_incomplete_runs()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser()
    parser.add_argument("--compile", action="store_true", help="Compile pipeline to YAML")
    args = parser.parse_args()

    if args.compile:
        compiler.Compiler().compile(recovery_pipeline, "pipelines/compiled/recovery_pipeline.yaml")
        print("Pipeline compiled → pipelines/compiled/recovery_pipeline.yaml")
