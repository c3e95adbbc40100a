"""
Docker Hub pull-count extractor.

Docker Hub only exposes a cumulative, monotonically non-decreasing pull
counter per repository (or per tag). Daily and windowed figures are
derived later by the reconciler from successive observations.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, quote, urlparse
import logging

import httpx

from ingestion.base import MetricSource
from ingestion.planner import HistoryWindow
from models.base import MetricKind, PackageManager
from core.config import settings
from core.exceptions import InvalidPackageReferenceError, SourceUnavailableError
from schemas.normalized import CumulativeSample

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "library"


@dataclass(frozen=True)
class DockerImageRef:
    namespace: str
    repository: str
    tag: Optional[str] = None

    @property
    def canonical(self) -> str:
        name = f"{self.namespace}/{self.repository}"
        return f"{name}:{self.tag}" if self.tag else name


def _parse_hub_url(value: str) -> Optional[DockerImageRef]:
    url = urlparse(value)
    if "hub.docker.com" not in (url.hostname or ""):
        return None

    parts = [p for p in url.path.split("/") if p]
    tag = parse_qs(url.query).get("name", [None])[0] or None

    if len(parts) >= 3 and parts[0] == "r":
        return DockerImageRef(parts[1], parts[2], tag)
    if len(parts) >= 2 and parts[0] == "_":
        return DockerImageRef(DEFAULT_NAMESPACE, parts[1], tag)
    return None


def parse_docker_image(value: str) -> Optional[DockerImageRef]:
    """
    Parse a Docker Hub image reference.

    Accepts:
        nginx                                   -> library/nginx
        bitnami/redis:7.2                       -> bitnami/redis, tag 7.2
        grafana/grafana@sha256:...              -> digest dropped
        https://hub.docker.com/r/ns/repo?name=t -> ns/repo, tag t
        https://hub.docker.com/_/postgres       -> library/postgres

    Returns None for anything else, including names with a registry host
    or more than two path segments.
    """
    value = (value or "").strip()
    if not value:
        return None

    if "://" in value:
        return _parse_hub_url(value)

    name_part, _, tag = value.split("@", 1)[0].partition(":")
    segments = [s for s in name_part.split("/") if s]
    tag = tag or None

    if len(segments) == 1:
        return DockerImageRef(DEFAULT_NAMESPACE, segments[0], tag)
    if len(segments) == 2:
        return DockerImageRef(segments[0], segments[1], tag)
    return None


class DockerHubSource(MetricSource):
    """Cumulative-counter metric source for Docker Hub repositories"""

    package_manager = PackageManager.DOCKER
    metric_kind = MetricKind.CUMULATIVE_COUNTER
    supports_range = False

    def __init__(self, client: Optional[httpx.AsyncClient] = None, base_url: Optional[str] = None, **kwargs):
        super().__init__(client=client, base_url=base_url or settings.DOCKER_HUB_API_URL, **kwargs)

    def parse_reference(self, value: str) -> str:
        ref = parse_docker_image(value)
        if ref is None:
            raise InvalidPackageReferenceError(
                f"Could not parse Docker image reference from '{value}'",
                context={"package_manager": self.package_manager.value, "reference": value}
            )
        return ref.canonical

    def _url(self, ref: DockerImageRef) -> str:
        url = f"{self.base_url}/{quote(ref.namespace)}/{quote(ref.repository)}/"
        if ref.tag:
            url += f"tags/{quote(ref.tag)}/"
        return url

    async def fetch_point(self, reference: str, window: HistoryWindow) -> CumulativeSample:
        """
        Fetch the current cumulative pull count.

        Raises:
            InvalidPackageReferenceError: If the stored reference no longer parses
            SourceUnavailableError: If no integer pull_count could be fetched
        """
        ref = parse_docker_image(reference)
        if ref is None:
            raise InvalidPackageReferenceError(
                f"Could not parse Docker image reference from '{reference}'",
                context={"package_manager": self.package_manager.value, "reference": reference}
            )

        data = await self._get_json(self._url(ref))
        pull_count = data.get("pull_count") if data else None

        if not isinstance(pull_count, int) or isinstance(pull_count, bool) or pull_count < 0:
            raise SourceUnavailableError(
                f"No pull count available for {ref.canonical}",
                context={"package_manager": self.package_manager.value, "package_name": ref.canonical}
            )

        logger.debug(f"Docker Hub pull_count for {ref.canonical}: {pull_count}")
        return CumulativeSample(pull_count=pull_count, tag=ref.tag)
