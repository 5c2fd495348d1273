"""OCI instance pools as the cluster's instance groups."""

import logging
from typing import Any, List

from oci import exceptions as oci_exceptions

from .client import OCIClient
from .models import (
    CloudInstance,
    CloudInstanceGroup,
    ClusterConfig,
    InstanceGroupConfig,
    InstanceStatus,
)

logger = logging.getLogger(__name__)

ACTIVE_INSTANCE_STATES = {
    "PROVISIONING",
    "STARTING",
    "RUNNING",
    "STOPPING",
    "STOPPED",
}


class OCICloud:
    """Cloud provider backed by the instance pools listed in the cluster config."""

    def __init__(self, client: OCIClient, cluster: ClusterConfig) -> None:
        self.client = client
        self.cluster = cluster

    def list_instance_groups(self) -> List[CloudInstanceGroup]:
        groups: List[CloudInstanceGroup] = []
        for group_config in self.cluster.instance_groups:
            groups.append(self._build_group(group_config))
        return groups

    def _build_group(self, group_config: InstanceGroupConfig) -> CloudInstanceGroup:
        pool = self.client.get_instance_pool(group_config.instance_pool_id)
        current_config_id = getattr(pool, "instance_configuration_id", None)
        summaries = self.client.list_instance_pool_instances(
            self.cluster.compartment_id, group_config.instance_pool_id
        )

        group = CloudInstanceGroup(
            name=group_config.name,
            group_id=group_config.instance_pool_id,
            role=group_config.role,
        )
        for summary in summaries:
            state = str(getattr(summary, "state", "") or "").upper()
            if state and state not in ACTIVE_INSTANCE_STATES:
                logger.debug("Skipping instance %s in state %s", summary.id, state)
                continue
            group.add_instance(self._build_instance(summary, current_config_id))

        logger.info(
            "Instance group %s: %d ready, %d need update",
            group.name,
            len(group.ready),
            len(group.need_update),
        )
        return group

    def _build_instance(self, summary: Any, current_config_id: Any) -> CloudInstance:
        config_id = getattr(summary, "instance_configuration_id", None)
        needs_update = bool(current_config_id and config_id and config_id != current_config_id)
        try:
            private_ip = self.client.get_primary_private_ip(self.cluster.compartment_id, summary.id)
        except oci_exceptions.ServiceError as exc:
            logger.warning("Could not resolve private IP for %s: %s", summary.id, exc.message)
            private_ip = None
        return CloudInstance(
            id=summary.id,
            status=InstanceStatus.NEEDS_UPDATE if needs_update else InstanceStatus.READY,
            private_ip=private_ip,
            display_name=getattr(summary, "display_name", None),
        )

    def detach_instance(self, instance: CloudInstance) -> None:
        if instance.group is None:
            raise ValueError(f"Instance {instance.id} has no instance group")
        work_request_id = self.client.detach_instance_pool_instance(instance.group.group_id, instance.id)
        logger.info(
            "Detached instance %s from pool %s (work request %s)",
            instance.id,
            instance.group.group_id,
            work_request_id or "N/A",
        )

    def terminate_instance(self, instance: CloudInstance) -> None:
        self.client.terminate_instance(instance.id)
        logger.info("Termination requested for instance %s", instance.id)
