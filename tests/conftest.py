"""
Pytest configuration and fixtures for converge-wait tests.
"""

import asyncio
from collections.abc import Callable, Mapping
from typing import Any

import pytest

from converge_wait.config import Settings, WaitConfiguration
from converge_wait.exceptions import ConflictError, MetricNotFoundError, NotFoundError
from converge_wait.models import Resource
from converge_wait.waiter import Waiter


class FakeResourceClient:
    """In-memory resource client. Objects are copied in and out."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], Resource] = {}
        self.created: list[Resource] = []
        self.updated: list[Resource] = []
        self.update_conflicts = 0
        self.get_calls = 0

    def add(self, obj: Resource) -> None:
        self.objects[(obj.kind, obj.namespace, obj.name)] = obj.model_copy(deep=True)

    def add_later(self, delay: float, obj: Resource) -> None:
        asyncio.get_running_loop().call_later(delay, self.add, obj)

    async def get(self, kind: type[Resource], namespace: str, name: str) -> Any:
        self.get_calls += 1
        try:
            obj = self.objects[(kind.kind, namespace, name)]
        except KeyError:
            raise NotFoundError(
                f"{kind.kind} '{name}' not found", kind=kind.kind, name=name
            ) from None
        return obj.model_copy(deep=True)

    async def list(
        self,
        kind: type[Resource],
        namespace: str | None = None,
        labels: Mapping[str, str] | None = None,
    ) -> list[Any]:
        labels = labels or {}
        return [
            obj.model_copy(deep=True)
            for (obj_kind, obj_namespace, _), obj in self.objects.items()
            if obj_kind == kind.kind
            and (namespace is None or obj_namespace == namespace)
            and all(obj.labels.get(k) == v for k, v in labels.items())
        ]

    async def create(self, obj: Resource) -> None:
        self.created.append(obj)
        self.add(obj)

    async def update(self, obj: Resource) -> None:
        if self.update_conflicts > 0:
            self.update_conflicts -= 1
            raise ConflictError("the object has been modified")
        self.updated.append(obj)
        self.add(obj)

    async def delete(self, obj: Resource) -> None:
        self.objects.pop((obj.kind, obj.namespace, obj.name), None)


class ScriptedMetricSource:
    """
    Metric source replaying a script of responses.

    Each call consumes the next response; the last one repeats forever.
    Exceptions in the script are raised instead of returned.
    """

    def __init__(self, *responses: float | Exception) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, dict[str, str]]] = []

    async def get_metric_value(
        self, family: str, labels: Mapping[str, str] | None = None
    ) -> float:
        self.calls.append((family, dict(labels or {})))
        if len(self.responses) > 1:
            response = self.responses.pop(0)
        else:
            response = self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def get_metric_labels(self, family: str) -> list[dict[str, str]]:
        return [labels for name, labels in self.calls if name == family]


class FakeProber:
    """Prober returning scripted status codes (or raising scripted errors)."""

    def __init__(self, *responses: int | Exception) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, str | None]] = []

    async def probe(self, url: str, bearer_token: str | None = None) -> int:
        self.calls.append((url, bearer_token))
        if len(self.responses) > 1:
            response = self.responses.pop(0)
        else:
            response = self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response



@pytest.fixture
def settings() -> Settings:
    """Settings with a fast cadence for testing."""
    return Settings(
        retry_interval=0.01,
        timeout=0.5,
        cluster_condition_timeout=1.0,
        deployment_timeout_multiplier=2,
        http_probe_timeout=1.0,
        bearer_token="test-token",
    )


@pytest.fixture
def fast_config() -> WaitConfiguration:
    """Wait configuration with a fast cadence for testing."""
    return WaitConfiguration(retry_interval=0.01, timeout=0.3)


@pytest.fixture
def resource_client() -> FakeResourceClient:
    return FakeResourceClient()


@pytest.fixture
def waiter(resource_client: FakeResourceClient, settings: Settings) -> Waiter:
    """Waiter on the test namespace, without metrics."""
    return Waiter(
        resource_client,
        "test-ns",
        prober=FakeProber(200),
        settings=settings,
        cluster_name="host",
    )


@pytest.fixture
def missing_metric() -> MetricNotFoundError:
    """Error raised for a series that is not exposed."""
    return MetricNotFoundError(
        "metric 'signups_total' not found", family="signups_total"
    )


@pytest.fixture
def metric_waiter(
    resource_client: FakeResourceClient, settings: Settings
) -> Callable[..., tuple[Waiter, ScriptedMetricSource]]:
    """Factory for a waiter whose metric source replays the given responses."""
    default_settings = settings

    def make(
        *responses: float | Exception, settings: Settings | None = None
    ) -> tuple[Waiter, ScriptedMetricSource]:
        metrics = ScriptedMetricSource(*responses)
        waiter = Waiter(
            resource_client,
            "host-ns",
            metrics=metrics,
            settings=settings or default_settings,
        )
        return waiter, metrics

    return make


@pytest.fixture
def fake_prober() -> Callable[..., FakeProber]:
    """Factory for a prober returning the given status codes or errors."""
    return FakeProber
