"""Kubernetes API access through the kubectl CLI."""

import json
import logging
import subprocess
from typing import Any, Dict, List, Optional

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .errors import KubectlError
from .models import ClusterMember

logger = logging.getLogger(__name__)

DEFAULT_DRAIN_TIMEOUT = 300.0


def _node_ready(node: Dict[str, Any]) -> bool:
    for condition in node.get("status", {}).get("conditions", []) or []:
        if condition.get("type") == "Ready":
            return condition.get("status") == "True"
    return False


def _internal_ip(node: Dict[str, Any]) -> Optional[str]:
    for address in node.get("status", {}).get("addresses", []) or []:
        if address.get("type") == "InternalIP":
            return address.get("address")
    return None


def parse_node(node: Dict[str, Any]) -> ClusterMember:
    """Project a Node object from ``kubectl get nodes -o json``."""
    spec = node.get("spec", {}) or {}
    return ClusterMember(
        name=node["metadata"]["name"],
        ready=_node_ready(node),
        provider_id=spec.get("providerID"),
        internal_ip=_internal_ip(node),
        unschedulable=bool(spec.get("unschedulable", False)),
    )


class KubectlClient:
    """Run kubectl against one cluster context."""

    def __init__(
        self,
        context: Optional[str] = None,
        kubeconfig: Optional[str] = None,
        drain_timeout: float = DEFAULT_DRAIN_TIMEOUT,
        binary: str = "kubectl",
    ) -> None:
        self.context = context
        self.kubeconfig = kubeconfig
        self.drain_timeout = drain_timeout
        self.binary = binary

    def _base_command(self) -> List[str]:
        command = [self.binary]
        if self.kubeconfig:
            command.extend(["--kubeconfig", self.kubeconfig])
        if self.context:
            command.extend(["--context", self.context])
        return command

    def run(self, args: List[str], timeout: Optional[float] = None) -> str:
        command = self._base_command() + args
        logger.debug("Running: %s", " ".join(command))
        try:
            result = subprocess.run(command, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired as exc:
            raise KubectlError(command, -1, f"timed out after {timeout:g}s") from exc
        except FileNotFoundError as exc:
            raise KubectlError(command, 127, f"{self.binary} not found") from exc
        if result.returncode != 0:
            raise KubectlError(command, result.returncode, result.stderr)
        return result.stdout

    @retry(
        retry=retry_if_exception_type(KubectlError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def get_json(self, args: List[str]) -> Dict[str, Any]:
        return json.loads(self.run(["get", *args, "-o", "json"], timeout=60))

    def list_nodes(self) -> List[ClusterMember]:
        items = self.get_json(["nodes"]).get("items", [])
        return [parse_node(item) for item in items]

    def list_pods(self, namespace: str) -> List[Dict[str, Any]]:
        return self.get_json(["pods", "--namespace", namespace]).get("items", [])

    def cordon_node(self, name: str) -> None:
        self.run(["cordon", name], timeout=60)

    def drain_node(self, name: str) -> None:
        # kubectl enforces the drain timeout itself; the extra minute covers process startup.
        self.run(
            [
                "drain",
                name,
                "--ignore-daemonsets",
                "--delete-emptydir-data",
                f"--timeout={int(self.drain_timeout)}s",
            ],
            timeout=self.drain_timeout + 60,
        )

    def delete_node(self, name: str) -> None:
        self.run(["delete", "node", name, "--ignore-not-found"], timeout=120)
