"""Shared fakes: a manual clock and recording cloud/Kubernetes/validator doubles."""

from typing import List, Optional

import pytest

from instance_replace.clock import CancelToken
from instance_replace.inventory import build_inventory
from instance_replace.models import (
    CloudInstance,
    CloudInstanceGroup,
    ClusterMember,
    GroupRole,
    InstanceStatus,
    ValidationFailure,
    ValidationResult,
)


class ManualClock:
    """Clock whose sleeps advance synthetic time instantly."""

    def __init__(self, start: float = 0.0) -> None:
        self.current = start
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.current

    def sleep(self, seconds: float, token: CancelToken) -> None:
        token.raise_if_cancelled()
        remaining = token.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self.sleeps.append(seconds)
        self.current += seconds
        token.raise_if_cancelled()


class FakeCloud:
    def __init__(self, groups: List[CloudInstanceGroup], calls: list) -> None:
        self.groups = groups
        self.calls = calls
        self.detach_error: Optional[Exception] = None
        self.terminate_error: Optional[Exception] = None

    def list_instance_groups(self) -> List[CloudInstanceGroup]:
        return self.groups

    def detach_instance(self, instance: CloudInstance) -> None:
        self.calls.append(("detach", instance.id))
        if self.detach_error:
            raise self.detach_error

    def terminate_instance(self, instance: CloudInstance) -> None:
        self.calls.append(("terminate", instance.id))
        if self.terminate_error:
            raise self.terminate_error


class FakeKube:
    def __init__(self, members: List[ClusterMember], calls: list) -> None:
        self.members = members
        self.calls = calls
        self.list_error: Optional[Exception] = None
        self.cordon_error: Optional[Exception] = None
        self.drain_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None
        self.on_drain = None

    def list_nodes(self) -> List[ClusterMember]:
        if self.list_error:
            raise self.list_error
        return list(self.members)

    def cordon_node(self, name: str) -> None:
        self.calls.append(("cordon", name))
        if self.cordon_error:
            raise self.cordon_error

    def drain_node(self, name: str) -> None:
        self.calls.append(("drain", name))
        if self.on_drain:
            self.on_drain()
        if self.drain_error:
            raise self.drain_error

    def delete_node(self, name: str) -> None:
        self.calls.append(("delete-node", name))
        if self.delete_error:
            raise self.delete_error


def unhealthy(group: Optional[str] = None, control_plane: bool = False) -> ValidationResult:
    return ValidationResult(
        failures=[
            ValidationFailure(
                kind="Node",
                name="node-x",
                message="node node-x is not ready",
                group=group,
                control_plane=control_plane,
            )
        ]
    )


class ScriptedValidator:
    """Replays ``results`` in order, then repeats the last one; healthy when empty.

    Entries may be booleans (True is healthy), ValidationResults or exceptions.
    """

    def __init__(self, calls: list) -> None:
        self.calls = calls
        self.results: list = []
        self._index = 0

    def validate(self) -> ValidationResult:
        self.calls.append(("validate",))
        if not self.results:
            return ValidationResult()
        entry = self.results[min(self._index, len(self.results) - 1)]
        self._index += 1
        if isinstance(entry, Exception):
            raise entry
        if isinstance(entry, ValidationResult):
            return entry
        return ValidationResult() if entry else unhealthy()


def build_groups() -> List[CloudInstanceGroup]:
    control_plane = CloudInstanceGroup(
        name="control-plane", group_id="ocid1.instancepool.oc1..cp", role=GroupRole.CONTROL_PLANE
    )
    control_plane.add_instance(CloudInstance(id="ocid1.instance.oc1..cp1", private_ip="10.0.1.10"))

    nodes = CloudInstanceGroup(name="nodes", group_id="ocid1.instancepool.oc1..nodes")
    nodes.add_instance(CloudInstance(id="ocid1.instance.oc1..a", private_ip="10.0.0.5"))
    nodes.add_instance(
        CloudInstance(
            id="ocid1.instance.oc1..b",
            private_ip="10.0.0.6",
            status=InstanceStatus.NEEDS_UPDATE,
        )
    )
    nodes.add_instance(CloudInstance(id="ocid1.instance.oc1..orphan", private_ip="10.0.0.99"))
    return [control_plane, nodes]


def build_members() -> List[ClusterMember]:
    return [
        ClusterMember(name="cp-1", ready=True, provider_id="oci://ocid1.instance.oc1..cp1"),
        # No provider ID: correlated through its internal IP.
        ClusterMember(name="ip-10-0-0-5.ec2.internal", ready=True, internal_ip="10.0.0.5"),
        ClusterMember(name="node-b", ready=True, provider_id="oci://ocid1.instance.oc1..b"),
    ]


@pytest.fixture
def calls() -> list:
    return []


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def token(clock) -> CancelToken:
    return CancelToken(clock)


@pytest.fixture
def cloud(calls) -> FakeCloud:
    return FakeCloud(build_groups(), calls)


@pytest.fixture
def kube(calls) -> FakeKube:
    return FakeKube(build_members(), calls)


@pytest.fixture
def validator(calls) -> ScriptedValidator:
    return ScriptedValidator(calls)


@pytest.fixture
def inventory(cloud, kube):
    return build_inventory(cloud, kube.list_nodes())


@pytest.fixture
def cloud_inventory(cloud):
    return build_inventory(cloud, None)
