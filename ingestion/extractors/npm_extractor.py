"""
npm registry download-count extractor.

The npm downloads API is point-sampled: each request returns the absolute
number of downloads over one date range, so the four rolling windows are
fetched independently and concurrently. A window that cannot be fetched is
reported as unknown rather than zero.
"""

import asyncio
import re
from typing import List, Optional, Dict, Any
from datetime import date
from urllib.parse import quote
import logging

import httpx

from ingestion.base import MetricSource
from ingestion.planner import HistoryWindow, WINDOW_DAYS
from models.base import MetricKind, PackageManager
from core.config import settings
from core.exceptions import InvalidPackageReferenceError, SourceUnavailableError
from schemas.normalized import DailyDownloads, PointSample, WindowCount

logger = logging.getLogger(__name__)

_BARE_NAME = re.compile(r"^[@\w\-./]+$")
_PACKAGE_URL = re.compile(r"npmjs\.com/package/((?:@[^/?#]+/)?[^/?#]+)")


def extract_package_name(value: str) -> Optional[str]:
    """
    Extract an npm package name from a bare name or an npmjs.com URL.

    >>> extract_package_name("@types/node")
    '@types/node'
    >>> extract_package_name("https://www.npmjs.com/package/left-pad")
    'left-pad'
    """
    value = (value or "").strip()
    if not value:
        return None

    if "://" not in value and _BARE_NAME.match(value):
        return value

    match = _PACKAGE_URL.search(value)
    if match:
        return match.group(1)

    return None


class NpmSource(MetricSource):
    """
    Point-sampled metric source for the npm registry.

    Endpoints:
        /downloads/point/{start}:{end}/{package}  absolute count for a range
        /downloads/range/{start}:{end}/{package}  per-day series for a range
    """

    package_manager = PackageManager.NPM
    metric_kind = MetricKind.POINT_SAMPLED
    supports_range = True

    def __init__(self, client: Optional[httpx.AsyncClient] = None, base_url: Optional[str] = None, **kwargs):
        super().__init__(client=client, base_url=base_url or settings.NPM_API_URL, **kwargs)

    def parse_reference(self, value: str) -> str:
        name = extract_package_name(value)
        if name is None:
            raise InvalidPackageReferenceError(
                f"Could not parse npm package name from '{value}'",
                context={"package_manager": self.package_manager.value, "reference": value}
            )
        return name

    def _url(self, kind: str, start: date, end: date, reference: str) -> str:
        # Scoped names keep their slash encoded, as the registry expects
        return f"{self.base_url}/downloads/{kind}/{start.isoformat()}:{end.isoformat()}/{quote(reference, safe='@')}"

    async def _fetch_window(self, reference: str, start: date, end: date) -> Optional[WindowCount]:
        data = await self._get_json(self._url("point", start, end, reference))
        if data is None:
            return None

        downloads = data.get("downloads")
        if not isinstance(downloads, int) or isinstance(downloads, bool) or downloads < 0:
            logger.warning(f"npm point response for {reference} has no usable download count: {data}")
            return None

        return WindowCount(
            downloads=downloads,
            start=start,
            end=end,
            package=data.get("package"),
        )

    async def fetch_point(self, reference: str, window: HistoryWindow) -> PointSample:
        """
        Fetch day, week, month and year counts concurrently.

        Raises:
            SourceUnavailableError: If none of the four windows could be fetched
        """
        names = list(WINDOW_DAYS)
        ranges = window.point_ranges()

        counts = await asyncio.gather(
            *(self._fetch_window(reference, *ranges[name]) for name in names)
        )
        sample = PointSample(**dict(zip(names, counts)))

        if sample.is_empty():
            raise SourceUnavailableError(
                f"No download counts available for {reference}",
                context={"package_manager": self.package_manager.value, "package_name": reference}
            )

        unknown = sample.unknown_windows()
        if unknown:
            logger.warning(f"npm windows unavailable for {reference}: {', '.join(unknown)}")

        return sample

    async def fetch_range(self, reference: str, start: date, end: date) -> Optional[List[DailyDownloads]]:
        """Fetch the per-day series for [start, end], None if unavailable"""
        data = await self._get_json(self._url("range", start, end, reference))
        if data is None:
            return None

        entries = data.get("downloads")
        if not isinstance(entries, list):
            logger.warning(f"npm range response for {reference} has no downloads list")
            return None

        series: List[DailyDownloads] = []
        for entry in entries:
            parsed = self._parse_range_entry(entry)
            if parsed is None:
                logger.debug(f"Skipping malformed npm range entry for {reference}: {entry}")
                continue
            series.append(parsed)

        logger.info(f"Fetched {len(series)} daily points for {reference} ({start} to {end})")
        return series

    @staticmethod
    def _parse_range_entry(entry: Dict[str, Any]) -> Optional[DailyDownloads]:
        if not isinstance(entry, dict):
            return None
        downloads = entry.get("downloads")
        if not isinstance(downloads, int) or isinstance(downloads, bool) or downloads < 0:
            return None
        try:
            day = date.fromisoformat(str(entry.get("day")))
        except ValueError:
            return None
        return DailyDownloads(day=day, downloads=downloads)
