"""
HTTP reachability probe.
"""

import httpx
import structlog

from .exceptions import ProbeTimeoutError, TransportError

logger = structlog.get_logger(__name__)


class HTTPProber:
    """
    Performs one GET request per probe.

    TLS verification is disabled because exposed endpoints usually carry
    self-signed certificates. The client timeout applies to a single probe
    and should stay well below the timeout of the enclosing wait.
    """

    def __init__(
        self,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self._transport = transport

    async def probe(self, url: str, bearer_token: str | None = None) -> int:
        """
        Get the status code returned by the endpoint.

        Raises:
            ProbeTimeoutError: If the endpoint did not answer in time
            TransportError: On any other request failure
        """
        headers = {}
        if bearer_token:
            headers["Authorization"] = f"Bearer {bearer_token}"

        try:
            async with httpx.AsyncClient(
                verify=False, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            # the endpoint is not available yet, e.g. its pod is still restarting
            raise ProbeTimeoutError(f"Probe of {url} timed out") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Probe of {url} failed: {e}", service="probe") from e

        logger.debug("Probed endpoint", url=url, status_code=response.status_code)
        return response.status_code
