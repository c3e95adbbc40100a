from ingestion.transformers.normalizer import MetricNormalizer
from ingestion.transformers.reconciler import Reconciliation, day_delta, reconcile, window_delta

__all__ = ["MetricNormalizer", "Reconciliation", "day_delta", "reconcile", "window_delta"]
