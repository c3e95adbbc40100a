from ingestion.loaders.stats_store import StatsStore, baseline_of
from ingestion.loaders.package_registry import PackageRegistry

__all__ = ["StatsStore", "PackageRegistry", "baseline_of"]
