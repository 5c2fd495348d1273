"""Capability interfaces for the cloud, Kubernetes and validation collaborators."""

from typing import List, Protocol

from .models import CloudInstance, CloudInstanceGroup, ClusterMember, ValidationResult


class CloudProvider(Protocol):
    def list_instance_groups(self) -> List[CloudInstanceGroup]:
        """Instances grouped by instance group, in configuration order."""
        ...

    def detach_instance(self, instance: CloudInstance) -> None:
        """Remove the instance from its group so the group launches a replacement."""
        ...

    def terminate_instance(self, instance: CloudInstance) -> None:
        ...


class KubernetesApi(Protocol):
    def list_nodes(self) -> List[ClusterMember]:
        ...

    def cordon_node(self, name: str) -> None:
        ...

    def drain_node(self, name: str) -> None:
        ...

    def delete_node(self, name: str) -> None:
        ...


class ClusterValidator(Protocol):
    def validate(self) -> ValidationResult:
        ...
