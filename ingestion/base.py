"""
Abstract base class for metric sources
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, Union
from datetime import date
import asyncio
import logging

import httpx

from core.config import settings
from core.exceptions import UnsupportedOperationError
from ingestion.planner import HistoryWindow
from models.base import MetricKind, PackageManager
from schemas.normalized import CumulativeSample, DailyDownloads, PointSample

logger = logging.getLogger(__name__)


class MetricSource(ABC):
    """
    Abstract base class for all upstream download-metric sources.

    Responsibilities:
    - Parse and canonicalize package references for one ecosystem
    - Fetch current metrics for one package in a normalized shape
    - Fetch a per-day series where the ecosystem has one

    A single failed sub-request yields None ("unknown"); it never raises.
    Subclasses raise only when nothing usable could be fetched for the
    whole package.
    """

    package_manager: PackageManager
    metric_kind: MetricKind
    supports_range: bool = False

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None
    ):
        self.client = client
        self.base_url = (base_url or "").rstrip("/")
        self.max_retries = settings.HTTP_MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay = settings.HTTP_RETRY_DELAY if retry_delay is None else retry_delay
        self.timeout = settings.HTTP_TIMEOUT if timeout is None else timeout

    @abstractmethod
    def parse_reference(self, value: str) -> str:
        """
        Canonicalize a user-supplied package reference.

        Raises:
            InvalidPackageReferenceError: If the value cannot be parsed
        """
        pass

    @abstractmethod
    async def fetch_point(
        self,
        reference: str,
        window: HistoryWindow
    ) -> Union[PointSample, CumulativeSample]:
        """
        Fetch current metrics for one package.

        Args:
            reference: Canonical package reference
            window: Planned window for this run

        Returns:
            PointSample for point-sampled sources, CumulativeSample for
            cumulative-counter sources
        """
        pass

    async def fetch_range(
        self,
        reference: str,
        start: date,
        end: date
    ) -> Optional[List[DailyDownloads]]:
        """Fetch a per-day download series, None if it could not be fetched"""
        raise UnsupportedOperationError(
            f"{self.package_manager.value} has no per-day download series",
            context={"package_manager": self.package_manager.value, "package_name": reference}
        )

    async def _get_json(self, url: str) -> Optional[Dict[str, Any]]:
        """
        GET a JSON object with retry and exponential backoff.

        Timeouts, transport and decoding errors, HTTP 429 and 5xx are retried up to
        max_retries times. Every failure ends as None.
        """
        if self.client is None:
            raise RuntimeError(f"{type(self).__name__} was created without an HTTP client")

        for attempt in range(self.max_retries + 1):
            retries_left = attempt < self.max_retries
            delay = self.retry_delay * (2 ** attempt)

            try:
                logger.debug(f"Request attempt {attempt + 1}/{self.max_retries + 1} to {url}")
                response = await self.client.get(
                    url,
                    headers={"Accept": "application/json"},
                    timeout=self.timeout
                )
            except httpx.RequestError as e:
                if retries_left:
                    logger.warning(f"{type(e).__name__} for {url}. Retrying in {delay} seconds")
                    await asyncio.sleep(delay)
                    continue
                logger.warning(f"Request to {url} failed after {attempt + 1} attempts: {e}")
                return None

            if response.status_code == 429 or response.status_code >= 500:
                if retries_left:
                    logger.warning(
                        f"HTTP {response.status_code} from {url}. "
                        f"Retrying in {delay} seconds (attempt {attempt + 1}/{self.max_retries + 1})"
                    )
                    await asyncio.sleep(delay)
                    continue
                logger.warning(f"HTTP {response.status_code} from {url} after {attempt + 1} attempts")
                return None

            if response.status_code == 404:
                logger.debug(f"Not found: {url}")
                return None

            if not response.is_success:
                logger.warning(f"HTTP {response.status_code} from {url}")
                return None

            try:
                data = response.json()
            except ValueError as e:
                logger.warning(f"Malformed JSON from {url}: {e}")
                return None

            if not isinstance(data, dict):
                logger.warning(f"Unexpected {type(data).__name__} body from {url}")
                return None

            return data

        return None
