"""Cluster health checks used between drain and termination."""

import logging
from typing import Any, Dict, List, Optional

from .interfaces import CloudProvider
from .inventory import find_member, index_members
from .kubectl import KubectlClient, parse_node
from .models import (
    CloudInstanceGroup,
    ClusterMember,
    Inventory,
    ValidationFailure,
    ValidationResult,
)

logger = logging.getLogger(__name__)

SYSTEM_NAMESPACE = "kube-system"


def _owned_by_job(pod: Dict[str, Any]) -> bool:
    owners = pod.get("metadata", {}).get("ownerReferences", []) or []
    return any(owner.get("kind") == "Job" for owner in owners)


def _pod_ready(pod: Dict[str, Any]) -> bool:
    """Every container ready, falling back to the pod's Ready condition."""
    status = pod.get("status", {}) or {}
    containers = status.get("containerStatuses")
    if containers:
        return all(container.get("ready") for container in containers)
    for condition in status.get("conditions", []) or []:
        if condition.get("type") == "Ready":
            return condition.get("status") == "True"
    return False


def pod_problem(pod: Dict[str, Any]) -> Optional[str]:
    """Why a system pod counts against cluster health, or None if it does not."""
    phase = (pod.get("status", {}) or {}).get("phase")
    if phase == "Succeeded":
        return None
    if phase == "Failed":
        # A failed Job pod is the Job controller's concern.
        return None if _owned_by_job(pod) else "is Failed"
    if phase == "Running":
        return None if _pod_ready(pod) else "is not ready"
    return f"is {phase or 'Unknown'}"


class KubectlClusterValidator:
    """Nodes must be Ready, pool instances must have joined, kube-system pods must be ready.

    When a cloud provider is given the instance groups are listed again on every
    validation, so instances launched by a surge count as failures until their
    node registers. Otherwise node failures are attributed using ``inventory``.
    """

    def __init__(
        self,
        kubectl: KubectlClient,
        inventory: Optional[Inventory] = None,
        cloud: Optional[CloudProvider] = None,
    ) -> None:
        self.kubectl = kubectl
        self.cloud = cloud
        self._inventory_groups: List[CloudInstanceGroup] = inventory.groups if inventory else []

    def validate(self) -> ValidationResult:
        nodes = [parse_node(item) for item in self.kubectl.get_json(["nodes"]).get("items", [])]
        groups = self.cloud.list_instance_groups() if self.cloud is not None else self._inventory_groups

        failures: List[ValidationFailure] = []
        node_groups = self._map_nodes(groups, nodes, failures)
        failures.extend(self._node_failures(nodes, node_groups))
        failures.extend(self._pod_failures())
        if failures:
            logger.debug("Validation found %d failure(s)", len(failures))
        return ValidationResult(failures=failures)

    def _map_nodes(
        self,
        groups: List[CloudInstanceGroup],
        nodes: List[ClusterMember],
        failures: List[ValidationFailure],
    ) -> Dict[str, CloudInstanceGroup]:
        by_id, by_ip = index_members(nodes)
        node_groups: Dict[str, CloudInstanceGroup] = {}
        for group in groups:
            for instance in group.instances():
                if self.cloud is None:
                    member = instance.member
                else:
                    member = find_member(instance, by_id, by_ip)
                if member is not None:
                    node_groups[member.name] = group
                elif self.cloud is not None:
                    failures.append(
                        ValidationFailure(
                            kind="Machine",
                            name=instance.id,
                            message=f"machine {instance.id} has not yet joined cluster",
                            group=group.name,
                            control_plane=group.is_control_plane,
                        )
                    )
        return node_groups

    def _node_failures(
        self, nodes: List[ClusterMember], node_groups: Dict[str, CloudInstanceGroup]
    ) -> List[ValidationFailure]:
        failures: List[ValidationFailure] = []
        for member in nodes:
            if member.ready:
                continue
            group = node_groups.get(member.name)
            failures.append(
                ValidationFailure(
                    kind="Node",
                    name=member.name,
                    message=f"node {member.name} is not ready",
                    group=group.name if group else None,
                    control_plane=group.is_control_plane if group else False,
                )
            )
        return failures

    def _pod_failures(self) -> List[ValidationFailure]:
        failures: List[ValidationFailure] = []
        for pod in self.kubectl.list_pods(SYSTEM_NAMESPACE):
            problem = pod_problem(pod)
            if problem is None:
                continue
            name = f"{SYSTEM_NAMESPACE}/{pod['metadata']['name']}"
            failures.append(
                ValidationFailure(kind="Pod", name=name, message=f"system pod {name} {problem}")
            )
        return failures
