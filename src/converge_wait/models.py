"""
Remote object models for converge-wait.

These are the typed views of the control-plane objects that waiters fetch
and criteria inspect. Resource clients are expected to return instances of
these models.
"""

from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, Field

CONDITION_TRUE = "True"
CONDITION_FALSE = "False"
CONDITION_UNKNOWN = "Unknown"

CLUSTER_ROLE_LABEL_PREFIX = "cluster-role.converge.dev/"
TENANT_ROLE = "tenant"


def cluster_role_label(role: str) -> str:
    """Get the label key marking a cluster registration with the given role."""
    return f"{CLUSTER_ROLE_LABEL_PREFIX}{role}"


class ObjectMeta(BaseModel):
    """Identity and labels of a remote object."""

    name: str
    namespace: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    deletion_timestamp: datetime | None = None


class Condition(BaseModel):
    """A status condition reported by the control plane."""

    type: str
    status: str = CONDITION_UNKNOWN
    reason: str = ""
    message: str = ""


class Resource(BaseModel):
    """Base class for remote objects."""

    kind: ClassVar[str] = "Resource"

    metadata: ObjectMeta

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def labels(self) -> dict[str, str]:
        return self.metadata.labels

    @property
    def is_being_deleted(self) -> bool:
        """Check if the object has been marked for deletion."""
        return self.metadata.deletion_timestamp is not None


class ClusterRegistrationStatus(BaseModel):
    conditions: list[Condition] = Field(default_factory=list)


class ClusterRegistration(Resource):
    """A custom object registering a member cluster with the control plane."""

    kind: ClassVar[str] = "ClusterRegistration"

    api_endpoint: str = ""
    status: ClusterRegistrationStatus = Field(
        default_factory=ClusterRegistrationStatus
    )


READY_CLUSTER_CONDITION = Condition(type="Ready", status=CONDITION_TRUE)


class Container(BaseModel):
    name: str
    image: str = ""


class DeploymentSpec(BaseModel):
    replicas: int = 1
    selector: dict[str, str] = Field(default_factory=dict)
    containers: list[Container] = Field(default_factory=list)


class DeploymentStatus(BaseModel):
    available_replicas: int = 0
    conditions: list[Condition] = Field(default_factory=list)


class Deployment(Resource):
    kind: ClassVar[str] = "Deployment"

    spec: DeploymentSpec = Field(default_factory=DeploymentSpec)
    status: DeploymentStatus = Field(default_factory=DeploymentStatus)

    def is_ready(self) -> bool:
        """Check that the deployment reports both Available and Progressing as true."""
        statuses = {c.type: c.status for c in self.status.conditions}
        return (
            statuses.get("Available") == CONDITION_TRUE
            and statuses.get("Progressing") == CONDITION_TRUE
        )


class PodStatus(BaseModel):
    phase: str = "Pending"
    conditions: list[Condition] = Field(default_factory=list)


class Pod(Resource):
    kind: ClassVar[str] = "Pod"

    status: PodStatus = Field(default_factory=PodStatus)

    def is_ready(self) -> bool:
        """Check if the pod has a Ready condition set to true."""
        for condition in self.status.conditions:
            if condition.type == "Ready":
                return condition.status == CONDITION_TRUE
        return False


class ServicePort(BaseModel):
    name: str
    port: int


class Service(Resource):
    kind: ClassVar[str] = "Service"

    ports: list[ServicePort] = Field(default_factory=list)


class RouteSpec(BaseModel):
    to_kind: str = "Service"
    to_name: str = ""
    target_port: str = ""
    # e.g. "passthrough", None when the route is plain HTTP
    tls_termination: str | None = None


class RouteIngress(BaseModel):
    host: str = ""


class RouteStatus(BaseModel):
    ingress: list[RouteIngress] = Field(default_factory=list)


class Route(Resource):
    """An externally exposed endpoint in front of a service."""

    kind: ClassVar[str] = "Route"

    spec: RouteSpec = Field(default_factory=RouteSpec)
    status: RouteStatus = Field(default_factory=RouteStatus)

    @property
    def host(self) -> str:
        """Get the host of the first ingress, or an empty string."""
        if not self.status.ingress:
            return ""
        return self.status.ingress[0].host


class ContainerMetrics(BaseModel):
    name: str
    memory_bytes: int = 0


class PodMetrics(Resource):
    kind: ClassVar[str] = "PodMetrics"

    containers: list[ContainerMetrics] = Field(default_factory=list)
