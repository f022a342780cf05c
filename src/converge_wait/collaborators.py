"""
Collaborator interfaces for converge-wait.

Waiters never talk to the remote system directly; they call into the objects
described here. Implementations must be safe for concurrent use, since one
instance is shared by every waiter derived from the same parent.
"""

from collections.abc import Mapping
from typing import Protocol, TypeVar

from .models import Resource

R = TypeVar("R", bound=Resource)


class ResourceClient(Protocol):
    """Access to the objects of the control plane."""

    async def get(self, kind: type[R], namespace: str, name: str) -> R:
        """
        Get one object.

        Raises:
            NotFoundError: If the object does not exist
            TransportError: If the control plane could not be reached
        """
        ...

    async def list(
        self,
        kind: type[R],
        namespace: str | None = None,
        labels: Mapping[str, str] | None = None,
    ) -> list[R]:
        """List the objects of a kind, optionally filtered by namespace and labels."""
        ...

    async def create(self, obj: Resource) -> None:
        ...

    async def update(self, obj: Resource) -> None:
        """
        Update an object.

        Raises:
            ConflictError: If the object was modified concurrently
        """
        ...

    async def delete(self, obj: Resource) -> None:
        ...


class MetricSource(Protocol):
    """Read access to a monitoring endpoint."""

    async def get_metric_value(
        self, family: str, labels: Mapping[str, str] | None = None
    ) -> float:
        """
        Get the value of the series of a family matching the given labels.

        Raises:
            MetricNotFoundError: If no such series is exposed
            TransportError: If the endpoint could not be reached
        """
        ...

    async def get_metric_labels(self, family: str) -> list[dict[str, str]]:
        """Get the label sets of all series of a family."""
        ...


class Prober(Protocol):
    """Performs a single HTTP GET."""

    async def probe(self, url: str, bearer_token: str | None = None) -> int:
        """
        Get the status code of a GET request to the URL.

        Raises:
            ProbeTimeoutError: If the endpoint did not answer in time
            TransportError: On any other failure
        """
        ...
