"""
Stats ingestion and history reconciliation pipeline.

Modules:
    base: Abstract MetricSource with retrying JSON fetches
    registry: Package manager to MetricSource dispatch
    planner: History window planning relative to yesterday
    runner: Ingestion orchestrator with per-package failure isolation
    scheduler: APScheduler integration for the daily and bootstrap runs

Subpackages:
    extractors: npm (point-sampled) and Docker Hub (cumulative) sources
    transformers: Delta reconciliation and snapshot/history row shaping
    loaders: Stats store and package registry with idempotent upserts

Architecture:
    For each selected package:

    1. Extract - Fetch window counts or a cumulative total from upstream
    2. Transform - Reconcile cumulative totals into deltas, shape rows
    3. Load - Upsert snapshot and history rows keyed by date

    A failure inside one package is recorded against that package and
    never aborts the batch.

Usage:
    from ingestion.runner import IngestionRunner

    runner = IngestionRunner(session, http_client=client)
    summary = await runner.run("daily")
    print(summary.to_payload())
"""

__all__ = [
    "MetricSource",
    "SourceRegistry",
    "IngestionRunner",
    "IngestionScheduler",
    "plan_window",
]
