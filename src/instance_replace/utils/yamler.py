import yaml
from typing import Any, Dict

from pydantic import ValidationError

from ..errors import ConfigNotFoundError
from ..models import ClusterConfig


def _load_yaml(yaml_file_path: str) -> Dict[str, Any]:
    try:
        with open(yaml_file_path, 'r') as file:
            config = yaml.safe_load(file)
    except FileNotFoundError:
        raise FileNotFoundError(f"YAML file not found at path: {yaml_file_path}")
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Error parsing YAML file: {e}")
    return config or {}


def load_cluster_config(yaml_file_path: str, cluster_name: str) -> ClusterConfig:
    """
    Read the YAML configuration file and build the configuration of one cluster.

    Expected layout::

        clusters:
          <cluster_name>:
            region: us-phoenix-1
            compartment_id: ocid1.compartment...
            kube_context: <context>
            instance_groups:
              - name: nodes
                role: node
                instance_pool_id: ocid1.instancepool...

    Args:
        yaml_file_path: Path to the YAML configuration file
        cluster_name: Cluster key under ``clusters``

    Returns:
        ClusterConfig: The validated cluster configuration

    Raises:
        ConfigNotFoundError: If the cluster is missing or its entry is invalid
        FileNotFoundError: If the YAML file cannot be found
        yaml.YAMLError: If the YAML file is malformed
    """
    config = _load_yaml(yaml_file_path)

    if 'clusters' not in config or not isinstance(config['clusters'], dict):
        raise ConfigNotFoundError("'clusters' key not found in configuration")

    clusters = config['clusters']
    if cluster_name not in clusters:
        available = list(clusters.keys())
        raise ConfigNotFoundError(
            f"Cluster '{cluster_name}' not found. Available clusters: {', '.join(available)}"
        )

    entry = clusters[cluster_name]
    if not isinstance(entry, dict):
        raise ConfigNotFoundError(f"Configuration for cluster '{cluster_name}' must be a mapping")

    try:
        cluster = ClusterConfig(**{**entry, "name": cluster_name})
    except ValidationError as e:
        raise ConfigNotFoundError(f"Invalid configuration for cluster '{cluster_name}': {e}") from e

    if not cluster.instance_groups:
        raise ConfigNotFoundError(f"No instance_groups configured for cluster '{cluster_name}'")
    return cluster
