"""
Waiter for converge-wait.

A Waiter binds a wait configuration, a set of metric baselines and the
collaborators used to observe one target namespace. Every wait it offers is
a thin application of the poll engine: fetch through a collaborator, apply
criteria, and report the result to the engine.
"""

import asyncio
import copy
from collections.abc import Callable, Sequence
from typing import Any

import structlog

from .collaborators import MetricSource, Prober, ResourceClient
from .config import RetryOption, Settings, Timeout, WaitConfiguration, get_settings
from .exceptions import (
    HardInputError,
    MetricNotFoundError,
    NotFoundError,
    TransientError,
)
from .metrics import MetricsClient
from .models import (
    ClusterRegistration,
    Condition,
    Deployment,
    ObjectMeta,
    Pod,
    PodMetrics,
    Resource,
    Route,
    RouteSpec,
    Service,
)
from .polling.adapters import fetch_until, list_until
from .polling.baseline import BaselineStore, baseline_key, label_pairs
from .polling.criteria import (
    Criterion,
    contains_condition,
    has_condition,
    match_all,
)
from .polling.engine import Continue, Fail, PollFunction, PollOutcome, Success, poll
from .probe import HTTPProber

logger = structlog.get_logger(__name__)

MANAGER_CONTAINER = "manager"


class Waiter:
    """
    Waits for the state of one namespace to converge.

    Waiters are cheap to specialize: with_options() and with_cancel() return
    a new waiter with its own configuration and its own copy of the
    baselines, sharing only the collaborators.
    """

    def __init__(
        self,
        client: ResourceClient,
        namespace: str,
        *,
        metrics: MetricSource | None = None,
        prober: Prober | None = None,
        config: WaitConfiguration | None = None,
        settings: Settings | None = None,
        bearer_token: str | None = None,
        cluster_name: str = "",
    ) -> None:
        """
        Initialize the waiter.

        Args:
            client: Client for the objects of the control plane
            namespace: Namespace the waits look into
            metrics: Optional metrics endpoint client
            prober: HTTP prober, defaults to an HTTPProber
            config: Wait configuration, defaults to the one from settings
            settings: Library settings
            bearer_token: Token sent to TLS routes, defaults to the one from settings
            cluster_name: Name of the observed cluster, used in logs
        """
        self.settings = settings or get_settings()
        self.client = client
        self.namespace = namespace
        self.cluster_name = cluster_name
        self.metrics = metrics
        self.prober = prober or HTTPProber(timeout=self.settings.http_probe_timeout)
        self.config = config or self.settings.wait_config
        self.bearer_token = (
            self.settings.bearer_token if bearer_token is None else bearer_token
        )
        self.baselines = BaselineStore(strict=self.settings.strict_baselines)
        self.cancel: asyncio.Event | None = None

    @classmethod
    def from_settings(
        cls,
        client: ResourceClient,
        namespace: str,
        settings: Settings | None = None,
        **kwargs: Any,
    ) -> "Waiter":
        """Create a waiter whose metrics client points at the configured endpoint."""
        settings = settings or get_settings()
        metrics = None
        if settings.metrics_url:
            metrics = MetricsClient(
                settings.metrics_url,
                bearer_token=settings.bearer_token,
                timeout=settings.http_probe_timeout,
            )
        return cls(client, namespace, metrics=metrics, settings=settings, **kwargs)

    def _copy(self) -> "Waiter":
        result = copy.copy(self)
        result.baselines = self.baselines.copy()
        return result

    def with_options(self, *options: RetryOption) -> "Waiter":
        """Return a new Waiter with the given retry options applied."""
        result = self._copy()
        result.config = self.config.with_options(*options)
        return result

    def with_cancel(self, cancel: asyncio.Event) -> "Waiter":
        """Return a new Waiter whose waits abort as soon as the event is set."""
        result = self._copy()
        result.cancel = cancel
        return result

    async def _wait(
        self,
        poll_fn: PollFunction,
        description: str,
        config: WaitConfiguration | None = None,
    ) -> Any:
        result = await poll(
            poll_fn, config or self.config, cancel=self.cancel, description=description
        )
        if not result.ok:
            logger.error(
                "Wait failed",
                description=description,
                cluster=self.cluster_name,
                namespace=self.namespace,
                attempts=result.attempts,
                last_value=repr(result.value),
                error=str(result.error),
            )
        return result.unwrap()

    # Metrics

    def _require_metrics(self) -> MetricSource:
        if self.metrics is None:
            raise HardInputError("no metrics endpoint configured for this waiter")
        return self.metrics

    async def get_metric_value(self, family: str, *label_and_values: str) -> float:
        """
        Get the value of the metric with the given family and label/value pairs.

        Raises:
            MetricNotFoundError: If the series does not exist
        """
        labels = dict(label_pairs(label_and_values))
        return await self._require_metrics().get_metric_value(family, labels)

    async def get_metric_value_or_zero(
        self, family: str, *label_and_values: str
    ) -> float:
        """Same as get_metric_value(), but returns 0 when the series does not exist."""
        labels = dict(label_pairs(label_and_values))
        try:
            return await self._require_metrics().get_metric_value(family, labels)
        except MetricNotFoundError:
            return 0.0

    async def get_metric_labels(self, family: str) -> list[dict[str, str]]:
        """Get the label sets of all series of the given family."""
        return await self._require_metrics().get_metric_labels(family)

    async def capture_baseline(self, family: str, *label_and_values: str) -> float:
        """
        Capture the current value of a series as its baseline.

        A series that is not exposed yet has a baseline of zero.
        """
        key = baseline_key(family, *label_and_values)
        value = await self.get_metric_value_or_zero(family, *label_and_values)
        self.baselines.set(key, value)
        logger.info("Captured metric baseline", key=key, value=value)
        return value

    async def wait_for_metric_delta(
        self, family: str, delta: float, *label_and_values: str
    ) -> float:
        """
        Wait for the metric to move by ``delta`` from its captured baseline.

        E.g. with 3 signups at the start of a test, waiting for 2 more signups
        (delta +2) means waiting for the metric to reach 5.
        """
        key = baseline_key(family, *label_and_values)
        adjusted_value = self.baselines.get(key) + delta
        return await self.wait_until_metric_has_value(
            family, adjusted_value, *label_and_values
        )

    async def wait_for_metric_baseline(
        self, family: str, *label_and_values: str
    ) -> float:
        """Wait for the metric to return to its captured baseline."""
        logger.info("Waiting until metric reached its baseline again", family=family)
        key = baseline_key(family, *label_and_values)
        return await self.wait_until_metric_has_value(
            family, self.baselines.get(key), *label_and_values
        )

    def _metric_poll(
        self,
        family: str,
        label_and_values: Sequence[str],
        accept: Callable[[float], bool],
        accept_missing: bool = False,
    ) -> PollFunction:
        labels = dict(label_pairs(label_and_values))
        metrics = self._require_metrics()

        async def poll_fn() -> PollOutcome:
            try:
                value = await metrics.get_metric_value(family, labels)
            except MetricNotFoundError as e:
                if accept_missing:
                    return Success(0.0)
                return Continue(error=e)
            if accept(value):
                return Success(value)
            return Continue(value=value)

        return poll_fn

    async def wait_until_metric_has_value(
        self, family: str, expected_value: float, *label_and_values: str
    ) -> float:
        """
        Wait for the metric to be exactly ``expected_value``.

        When the expected value is 0, a series that is not exposed at all is
        accepted too.
        """
        logger.info(
            "Waiting for metric to reach value",
            family=family,
            labels=list(label_and_values),
            expected_value=expected_value,
        )
        poll_fn = self._metric_poll(
            family,
            label_and_values,
            lambda value: value == expected_value,
            accept_missing=expected_value == 0,
        )
        return await self._wait(
            poll_fn,
            f"metric '{family}{list(label_and_values)}' to reach {expected_value}",
        )

    async def wait_until_metric_has_value_or_more(
        self, family: str, expected_value: float, *label_and_values: str
    ) -> float:
        """Wait for the metric to reach ``expected_value`` or more."""
        logger.info(
            "Waiting for metric to reach value or more",
            family=family,
            labels=list(label_and_values),
            expected_value=expected_value,
        )
        poll_fn = self._metric_poll(
            family, label_and_values, lambda value: value >= expected_value
        )
        return await self._wait(
            poll_fn,
            f"metric '{family}{list(label_and_values)}' "
            f"to reach {expected_value} or more",
        )

    async def wait_until_metric_has_value_or_less(
        self, family: str, expected_value: float, *label_and_values: str
    ) -> float:
        """Wait for the metric to reach ``expected_value`` or less."""
        logger.info(
            "Waiting for metric to reach value or less",
            family=family,
            labels=list(label_and_values),
            expected_value=expected_value,
        )
        poll_fn = self._metric_poll(
            family, label_and_values, lambda value: value <= expected_value
        )
        return await self._wait(
            poll_fn,
            f"metric '{family}{list(label_and_values)}' "
            f"to reach {expected_value} or less",
        )

    # Services and routes

    async def wait_for_service(self, name: str) -> Service:
        """Wait until there is a service with the given name in the namespace."""
        logger.info("Waiting for service", name=name, namespace=self.namespace)
        return await self._wait(
            fetch_until(lambda: self.client.get(Service, self.namespace, name)),
            f"service '{name}' in namespace '{self.namespace}'",
        )

    async def setup_route_for_service(self, service_name: str, endpoint: str) -> Route:
        """
        Create a route for the given service if needed, and wait until it is available.

        The route has the same namespace and name as the service and exposes
        its ``https`` port with passthrough TLS termination.
        """
        logger.info(
            "Setting up route for service", service=service_name, endpoint=endpoint
        )
        service = await self.wait_for_service(service_name)

        try:
            route = await self.client.get(Route, service.namespace, service.name)
        except NotFoundError:
            route = Route(
                metadata=ObjectMeta(name=service.name, namespace=service.namespace),
                spec=RouteSpec(
                    to_kind=service.kind,
                    to_name=service.name,
                    target_port="https",
                    tls_termination="passthrough",
                ),
            )
            await self.client.create(route)
            logger.info("Created route", name=route.name, namespace=route.namespace)

        return await self.wait_for_route_to_be_available(
            route.namespace, route.name, endpoint
        )

    async def wait_for_route_to_be_available(
        self, namespace: str, name: str, endpoint: str
    ) -> Route:
        """
        Wait until the route has an ingress host and its endpoint answers ``200 OK``.
        """
        logger.info("Waiting for route", name=name, namespace=namespace)

        async def poll_fn() -> PollOutcome:
            route = await self.client.get(Route, namespace, name)
            # assume a single ingress, whose host is set once the route is ready
            if not route.host:
                return Continue(value=route)

            if route.spec.tls_termination:
                url = f"https://{route.host}{endpoint}"
                status_code = await self.prober.probe(url, self.bearer_token)
            else:
                url = f"http://{route.host}{endpoint}"
                status_code = await self.prober.probe(url)

            if status_code != 200:
                return Continue(value=route)
            return Success(route)

        return await self._wait(
            poll_fn, f"route '{name}' in namespace '{namespace}' to be available"
        )

    # Cluster registrations

    def _condition_config(self, condition: Condition | None) -> WaitConfiguration:
        if condition is None:
            return self.config
        return self.config.with_options(
            Timeout(self.settings.cluster_condition_timeout)
        )

    async def get_cluster_registration(
        self, cluster_type: str, namespace: str, condition: Condition | None = None
    ) -> tuple[ClusterRegistration | None, bool]:
        """
        Get the cluster registration of the given type running in the given namespace.

        Returns:
            The registration and True if one exists with the condition (if
            any), otherwise (None, False)
        """
        clusters = await self.client.list(
            ClusterRegistration,
            self.namespace,
            {"namespace": namespace, "type": cluster_type},
        )
        if not clusters:
            logger.info(
                "No cluster registration with expected labels",
                namespace=namespace,
                type=cluster_type,
            )
        # assume there is zero or one match only
        for cluster in clusters:
            if contains_condition(cluster.status.conditions, condition):
                return cluster, True
        return None, False

    async def wait_for_cluster_registration_with_condition(
        self, cluster_type: str, namespace: str, condition: Condition | None = None
    ) -> ClusterRegistration:
        """
        Wait for the cluster registration of the given type for the given namespace.

        If a condition is given, the registration must also have it and the
        wait uses the longer cluster condition timeout.
        """
        logger.info(
            "Waiting for cluster registration",
            type=cluster_type,
            namespace=namespace,
            condition=condition.model_dump() if condition else None,
        )

        async def poll_fn() -> PollOutcome:
            cluster, ready = await self.get_cluster_registration(
                cluster_type, namespace, condition
            )
            if ready:
                return Success(cluster)
            return Continue()

        return await self._wait(
            poll_fn,
            f"cluster registration of type '{cluster_type}' "
            f"for namespace '{namespace}'",
            self._condition_config(condition),
        )

    async def wait_for_named_cluster_registration_with_condition(
        self, name: str, condition: Condition | None = None
    ) -> ClusterRegistration:
        """Wait for the named cluster registration to have the given condition."""
        logger.info(
            "Waiting for named cluster registration",
            name=name,
            namespace=self.namespace,
            condition=condition.model_dump() if condition else None,
        )
        criteria = [has_condition(condition)] if condition else []
        return await self._wait(
            fetch_until(
                lambda: self.client.get(ClusterRegistration, self.namespace, name),
                criteria,
            ),
            f"cluster registration '{name}' in namespace '{self.namespace}'",
            self._condition_config(condition),
        )

    async def wait_for_cluster_registration(
        self, *criteria: Criterion[ClusterRegistration]
    ) -> ClusterRegistration:
        """Wait until a cluster registration in the namespace matches all criteria."""
        logger.info(
            "Waiting for cluster registration to match criteria",
            namespace=self.namespace,
            criteria=[c.name for c in criteria],
        )

        def log_mismatch(candidate: ClusterRegistration, failed: list[str]) -> None:
            logger.debug(
                "Cluster registration does not match yet",
                name=candidate.name,
                failed=failed,
            )

        return await self._wait(
            list_until(
                lambda: self.client.list(ClusterRegistration, self.namespace),
                criteria,
                log_mismatch,
            ),
            f"cluster registration in namespace '{self.namespace}' to match criteria",
        )

    async def update_cluster_registration(
        self, name: str, modify: Callable[[ClusterRegistration], None]
    ) -> ClusterRegistration:
        """
        Apply ``modify`` to the latest cluster registration and update it.

        Update failures (e.g. the object has been modified) are retried on a
        freshly fetched version. A failure to fetch the registration ends the
        wait immediately.
        """

        async def poll_fn() -> PollOutcome:
            try:
                cluster = await self.client.get(
                    ClusterRegistration, self.namespace, name
                )
            except TransientError as e:
                return Fail(e)
            modify(cluster)
            try:
                await self.client.update(cluster)
            except TransientError as e:
                logger.info(
                    "Error updating cluster registration, will retry",
                    name=name,
                    error=str(e),
                )
                return Continue(error=e)
            return Success(cluster)

        return await self._wait(poll_fn, f"update of cluster registration '{name}'")

    # Deployments and pods

    async def wait_for_deployment_to_get_ready(
        self, name: str, replicas: int, *criteria: Criterion[Deployment]
    ) -> Deployment:
        """
        Wait until the deployment is ready together with the given number of replicas.

        All pods selected by the deployment must be ready and not being
        deleted, and the deployment must match the extra criteria.
        """
        logger.info(
            "Waiting for deployment to get ready", name=name, namespace=self.namespace
        )

        async def poll_fn() -> PollOutcome:
            deployment = await self.client.get(Deployment, self.namespace, name)
            if not deployment.is_ready():
                return Continue(value=deployment)
            if deployment.status.available_replicas != replicas:
                return Continue(value=deployment)

            pods = await self.client.list(
                Pod, self.namespace, deployment.spec.selector
            )
            if len(pods) != replicas:
                return Continue(value=deployment)
            for pod in pods:
                if pod.is_being_deleted or not pod.is_ready():
                    return Continue(value=deployment)

            if not match_all(deployment, criteria):
                return Continue(value=deployment)
            return Success(deployment)

        config = self.config.with_options(
            Timeout(self.config.timeout * self.settings.deployment_timeout_multiplier)
        )
        return await self._wait(
            poll_fn, f"deployment '{name}' in namespace '{self.namespace}'", config
        )

    async def get_memory_usage(self, pod_name: str, namespace: str) -> int:
        """Get the memory usage (in KB) of the manager container of the given pod."""

        async def poll_fn() -> PollOutcome:
            pod_metrics = await self.client.get(PodMetrics, namespace, pod_name)
            for container in pod_metrics.containers:
                if container.name == MANAGER_CONTAINER:
                    return Success(container)
            return Continue(value=pod_metrics)

        container = await self._wait(
            poll_fn, f"metrics of pod '{pod_name}' in namespace '{namespace}'"
        )
        # rounded up, like a kilo-scaled quantity
        return -(-container.memory_bytes // 1000)

    # Diagnostics

    async def describe_objects(
        self, kind: type[Resource], namespace: str | None = None
    ) -> str:
        """Get a printable dump of the objects of a kind, for failure diagnostics."""
        namespace = self.namespace if namespace is None else namespace
        try:
            objects = await self.client.list(kind, namespace or None)
        except TransientError as e:
            return f"unable to list {kind.kind}: {e}"
        content = "\n".join(obj.model_dump_json(indent=2) for obj in objects)
        return f"\n{kind.kind} present in the namespace:\n{content}\n"
