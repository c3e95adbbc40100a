"""
Metric source registry.

Maps every declared package manager to a MetricSource. Ecosystems without
an implementation resolve to UnsupportedSource, which fails fast with a
typed error instead of falling back to another ecosystem's adapter.
"""

from typing import Dict, List, Optional, Union
import logging

import httpx

from ingestion.base import MetricSource
from ingestion.extractors import DockerHubSource, NpmSource
from ingestion.planner import HistoryWindow
from models.base import MetricKind, PackageManager
from core.exceptions import UnsupportedEcosystemError

logger = logging.getLogger(__name__)


class UnsupportedSource(MetricSource):
    """Placeholder source for a declared but unimplemented package manager"""

    metric_kind = MetricKind.POINT_SAMPLED

    def __init__(self, package_manager: PackageManager):
        super().__init__()
        self.package_manager = package_manager

    def _unsupported(self, reference: str) -> UnsupportedEcosystemError:
        return UnsupportedEcosystemError(
            f"Unsupported ecosystem: {self.package_manager.value}",
            context={"package_manager": self.package_manager.value, "reference": reference}
        )

    def parse_reference(self, value: str) -> str:
        raise self._unsupported(value)

    async def fetch_point(self, reference: str, window: HistoryWindow):
        raise self._unsupported(reference)

    async def fetch_range(self, reference, start, end):
        raise self._unsupported(reference)


class SourceRegistry:
    """Dispatch table from package manager to metric source"""

    def __init__(self, sources: Optional[List[MetricSource]] = None):
        self._sources: Dict[PackageManager, MetricSource] = {}
        for source in sources or []:
            self.register(source)

    def register(self, source: MetricSource) -> None:
        self._sources[source.package_manager] = source

    def get(self, package_manager: Union[PackageManager, str]) -> MetricSource:
        package_manager = PackageManager(package_manager)
        source = self._sources.get(package_manager)
        if source is None:
            return UnsupportedSource(package_manager)
        return source

    def supported(self) -> List[PackageManager]:
        """Package managers with an implemented source, in declaration order"""
        return [pm for pm in PackageManager if pm in self._sources]

    def normalize_reference(self, package_manager: Union[PackageManager, str], value: str) -> str:
        """
        Validate and canonicalize a user-supplied reference.

        Raises:
            InvalidPackageReferenceError: If the source cannot parse the value
            UnsupportedEcosystemError: If the package manager has no source
        """
        return self.get(package_manager).parse_reference(value)


def build_source_registry(client: Optional[httpx.AsyncClient] = None) -> SourceRegistry:
    """Registry with every implemented source sharing one HTTP client"""
    return SourceRegistry([
        NpmSource(client=client),
        DockerHubSource(client=client),
    ])
