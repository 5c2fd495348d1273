"""
Build the cloud and Kubernetes handles for a configured cluster.
"""

from typing import Optional

from ..client import OCIClient
from ..cloud import OCICloud
from ..kubectl import KubectlClient
from ..models import ClusterConfig
from .display import display_error, display_warning


def create_oci_client(cluster: ClusterConfig) -> Optional[OCIClient]:
    """
    Create and initialize an OCI client for the cluster's region and profile.

    Returns:
        OCIClient or None if initialization fails
    """
    try:
        return OCIClient(
            region=cluster.region,
            profile_name=cluster.profile,
            config_file=cluster.config_file,
            auth_type=cluster.auth_type,
        )
    except Exception as e:
        display_error(f"Failed to initialize OCI client for region {cluster.region}: {e}")
        display_warning(f"Make sure you have configured OCI authentication for region {cluster.region}")
        return None


def build_cloud(cluster: ClusterConfig) -> Optional[OCICloud]:
    client = create_oci_client(cluster)
    if client is None:
        return None
    return OCICloud(client, cluster)


def build_kubectl(cluster: ClusterConfig) -> KubectlClient:
    return KubectlClient(
        context=cluster.kube_context,
        kubeconfig=cluster.kubeconfig,
        drain_timeout=cluster.drain_timeout,
    )
