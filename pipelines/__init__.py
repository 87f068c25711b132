"""
Pipelines — Kubeflow Pipelines (KFP v2) components and pipeline definitions.

Each component builds the ingestion orchestrator from its container's
environment, so one document (or one recovery sweep) runs per step.
"""
