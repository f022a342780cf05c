"""
Metrics client for converge-wait.

This module scrapes a Prometheus text-format endpoint and looks up the value
of a single series. A series that is not exposed is reported distinctly from
an endpoint that cannot be reached.
"""

from collections.abc import Mapping

import httpx
import structlog
from prometheus_client.parser import text_string_to_metric_families
from prometheus_client.samples import Sample

from .exceptions import MetricNotFoundError, TransportError

logger = structlog.get_logger(__name__)


class MetricsClient:
    """
    Client for a metrics endpoint.

    Every call scrapes the endpoint again, there is no caching between
    calls.
    """

    def __init__(
        self,
        url: str,
        bearer_token: str = "",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the metrics client.

        Args:
            url: Metrics endpoint URL
            bearer_token: Optional token sent as ``Authorization: Bearer``
            timeout: Client-side timeout of a single scrape (seconds)
            transport: Optional httpx transport, mostly for tests
        """
        self.url = url
        self.bearer_token = bearer_token
        self.timeout = timeout
        self._transport = transport

    async def _scrape(self) -> str:
        headers = {"Accept": "text/plain"}
        if self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"

        try:
            async with httpx.AsyncClient(
                verify=False, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(self.url, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(
                f"Failed to scrape metrics from {self.url}: {e}", service="metrics"
            ) from e

        if response.status_code != 200:
            raise TransportError(
                f"Failed to scrape metrics from {self.url}: "
                f"status {response.status_code}",
                service="metrics",
                context={"status_code": response.status_code},
            )
        return response.text

    async def _samples(self, family: str) -> list[Sample]:
        text = await self._scrape()
        try:
            families = list(text_string_to_metric_families(text))
        except ValueError as e:
            raise TransportError(
                f"Failed to parse metrics from {self.url}: {e}", service="metrics"
            ) from e

        # counters are exposed as `<family>_total`
        names = {family, f"{family}_total"}
        return [
            sample
            for metric_family in families
            for sample in metric_family.samples
            if sample.name in names
        ]

    async def get_metric_value(
        self, family: str, labels: Mapping[str, str] | None = None
    ) -> float:
        """
        Get the value of the first series of the family carrying all the labels.

        Raises:
            MetricNotFoundError: If no such series is exposed
            TransportError: If the endpoint could not be scraped
        """
        labels = dict(labels or {})
        for sample in await self._samples(family):
            if all(sample.labels.get(k) == v for k, v in labels.items()):
                return float(sample.value)

        logger.debug("Metric not found", family=family, labels=labels)
        raise MetricNotFoundError(
            f"metric '{family}{labels}' not found", family=family
        )

    async def get_metric_labels(self, family: str) -> list[dict[str, str]]:
        """
        Get the label sets of all series of the family.

        Raises:
            MetricNotFoundError: If the family is not exposed
        """
        samples = await self._samples(family)
        if not samples:
            raise MetricNotFoundError(f"metric '{family}' not found", family=family)
        return [dict(sample.labels) for sample in samples]
