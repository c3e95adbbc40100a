"""Metric sources for each supported package ecosystem"""

from ingestion.extractors.npm_extractor import NpmSource, extract_package_name
from ingestion.extractors.docker_hub_extractor import DockerHubSource, DockerImageRef, parse_docker_image

__all__ = [
    "NpmSource",
    "DockerHubSource",
    "DockerImageRef",
    "extract_package_name",
    "parse_docker_image",
]
