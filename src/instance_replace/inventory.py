"""Build the per-invocation inventory of cloud instances."""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import KubernetesUnreachableError
from .interfaces import CloudProvider, KubernetesApi
from .models import CloudInstance, ClusterMember, Inventory

logger = logging.getLogger(__name__)

PROVIDER_ID_PREFIX = "oci://"


def list_cluster_members(kube: KubernetesApi) -> List[ClusterMember]:
    try:
        return kube.list_nodes()
    except Exception as exc:
        raise KubernetesUnreachableError(exc) from exc


def _provider_instance_id(provider_id: Optional[str]) -> Optional[str]:
    if not provider_id:
        return None
    if provider_id.startswith(PROVIDER_ID_PREFIX):
        return provider_id[len(PROVIDER_ID_PREFIX):]
    return provider_id


def index_members(
    members: Sequence[ClusterMember],
) -> Tuple[Dict[str, ClusterMember], Dict[str, ClusterMember]]:
    """Index nodes by instance OCID and, for nodes without a provider ID, by internal IP.

    A node that names its instance is never matched by IP, so a stale node whose
    address was reused by a new instance stays unattached.
    """
    by_id: Dict[str, ClusterMember] = {}
    by_ip: Dict[str, ClusterMember] = {}
    for member in members:
        instance_id = _provider_instance_id(member.provider_id)
        if instance_id:
            by_id[instance_id] = member
        elif member.internal_ip:
            by_ip[member.internal_ip] = member
    return by_id, by_ip


def find_member(
    instance: CloudInstance, by_id: Dict[str, ClusterMember], by_ip: Dict[str, ClusterMember]
) -> Optional[ClusterMember]:
    member = by_id.get(instance.id)
    if member is None and instance.private_ip:
        member = by_ip.get(instance.private_ip)
    return member


def correlate(instance: CloudInstance, by_id: Dict[str, ClusterMember], by_ip: Dict[str, ClusterMember]) -> None:
    """Attach the matching node, preferring the provider ID over the private IP."""
    instance.member = find_member(instance, by_id, by_ip)


def build_inventory(cloud: CloudProvider, members: Optional[Sequence[ClusterMember]] = None) -> Inventory:
    """Fetch instance groups and correlate them with cluster members.

    ``members`` is None in cloud-only mode, leaving every instance uncorrelated.
    """
    groups = cloud.list_instance_groups()

    if members is not None:
        by_id, by_ip = index_members(members)
        for group in groups:
            for instance in group.instances():
                correlate(instance, by_id, by_ip)

    inventory = Inventory(groups=groups)
    logger.debug(
        "Inventory holds %d instance(s) across %d group(s)",
        len(inventory.instances()),
        len(groups),
    )
    return inventory
