"""
Criteria composition for converge-wait.

A criterion is a small named predicate over a fetched object. Waiters fetch
or list candidates and use the helpers below to decide whether one of them
is in the desired state.
"""

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from ..models import (
    TENANT_ROLE,
    ClusterRegistration,
    Condition,
    Deployment,
    cluster_role_label,
)

T = TypeVar("T")


@dataclass(frozen=True)
class Criterion(Generic[T]):
    """A named predicate. ``match`` must not mutate its argument."""

    name: str
    match: Callable[[T], bool]

    def __call__(self, target: T) -> bool:
        return self.match(target)


def match_all(target: T, criteria: Iterable[Criterion[T]]) -> bool:
    """
    Check that the target matches every criterion.

    Criteria are evaluated in order and evaluation stops at the first
    mismatch. An empty list of criteria always matches.
    """
    return all(criterion.match(target) for criterion in criteria)


def failed_criteria(target: T, criteria: Iterable[Criterion[T]]) -> list[str]:
    """Get the names of the criteria the target does not match."""
    return [criterion.name for criterion in criteria if not criterion.match(target)]


def first_match(
    candidates: Iterable[T], criteria: Sequence[Criterion[T]]
) -> T | None:
    """Get the first candidate matching all criteria, or None."""
    for candidate in candidates:
        if match_all(candidate, criteria):
            return candidate
    return None


def contains_condition(
    conditions: Iterable[Condition], expected: Condition | None
) -> bool:
    """
    Check that the conditions contain one of the expected type and status.

    Only the first condition of the expected type is considered. A missing
    expectation (None) always matches.
    """
    if expected is None:
        return True
    for condition in conditions:
        if condition.type == expected.type:
            return condition.status == expected.status
    return False


# Cluster registration criteria


def has_name(expected_name: str) -> Criterion[ClusterRegistration]:
    """Criterion checking the name of the cluster registration."""
    return Criterion(
        name=f"has name '{expected_name}'",
        match=lambda actual: actual.name == expected_name,
    )


def has_condition(expected: Condition) -> Criterion[ClusterRegistration]:
    """Criterion checking that the cluster registration has the given condition."""
    return Criterion(
        name=f"has condition {expected.type}={expected.status}",
        match=lambda actual: contains_condition(actual.status.conditions, expected),
    )


def has_labels(expected: Mapping[str, str]) -> Criterion[ClusterRegistration]:
    """Criterion checking that the cluster registration carries all the given labels."""
    expected = dict(expected)

    def match(actual: ClusterRegistration) -> bool:
        for key, value in expected.items():
            if actual.labels.get(key) != value:
                return False
        return True

    return Criterion(name=f"has labels {expected}", match=match)


def has_no_label(key: str) -> Criterion[ClusterRegistration]:
    """Criterion checking that the cluster registration does not carry a label."""
    return Criterion(
        name=f"has no label '{key}'",
        match=lambda actual: key not in actual.labels,
    )


def has_no_tenant_label() -> Criterion[ClusterRegistration]:
    """Criterion checking that the cluster registration has no tenant role label."""
    return has_no_label(cluster_role_label(TENANT_ROLE))


# Deployment criteria


def has_container_with_image(
    container_name: str, image: str
) -> Criterion[Deployment]:
    """Criterion checking that the deployment runs the given image in a container."""
    return Criterion(
        name=f"has container '{container_name}' with image '{image}'",
        match=lambda deployment: any(
            container.name == container_name and container.image == image
            for container in deployment.spec.containers
        ),
    )
