"""KFP v2 component — Resume interrupted ingestion runs.

Picks up every run whose persisted state is not terminal (e.g. a worker
died mid-run) and continues it from its last completed stage.  Intended
for a recurring KFP run.
"""

from kfp import dsl


@dsl.component(
    base_image="python:3.11-slim",
    packages_to_install=["cognify-ingest"],
)
def resume_incomplete_runs(metrics: dsl.Output[dsl.Metrics]) -> str:
    """Resume all non-terminal runs.

    Returns
    -------
    str
        Summary with the number of runs resumed and how they ended.
    """
    import logging
    from collections import Counter

    from cognify_ingest.orchestration.factory import build_orchestrator

    logging.basicConfig(level=logging.INFO)
    log = logging.getLogger("resume_incomplete_runs")

    orchestrator = build_orchestrator()
    try:
        runs = orchestrator.resume_incomplete()
    finally:
        orchestrator.events.close()

    outcomes = Counter(run.state.value for run in runs)
    metrics.log_metric("runs_resumed", len(runs))
    metrics.log_metric("runs_ready", outcomes.get("ready", 0))
    metrics.log_metric("runs_failed", outcomes.get("failed", 0))

    msg = f"Resumed {len(runs)} runs ({outcomes.get('ready', 0)} ready, {outcomes.get('failed', 0)} failed)"
    log.info(msg)
    return msg
