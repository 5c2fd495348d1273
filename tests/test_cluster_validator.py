"""Tests for the kubectl cluster validator."""

from unittest.mock import Mock

import pytest

from instance_replace.cluster_validator import KubectlClusterValidator, pod_problem
from instance_replace.models import CloudInstance


def _node(name, ready=True, instance_id=None):
    node = {
        "metadata": {"name": name},
        "status": {"conditions": [{"type": "Ready", "status": "True" if ready else "False"}]},
    }
    if instance_id:
        node["spec"] = {"providerID": f"oci://{instance_id}"}
    return node


def _pod(name, phase, ready=True, owner=None):
    pod = {
        "metadata": {"name": name},
        "status": {
            "phase": phase,
            "containerStatuses": [{"name": "main", "ready": ready}],
        },
    }
    if owner:
        pod["metadata"]["ownerReferences"] = [{"kind": owner, "name": f"{name}-owner"}]
    return pod


def _kubectl(nodes, pods):
    kubectl = Mock()
    kubectl.get_json.return_value = {"items": nodes}
    kubectl.list_pods.return_value = pods
    return kubectl


def test_healthy_cluster(inventory):
    kubectl = _kubectl([_node("cp-1"), _node("node-b")], [_pod("coredns-1", "Running")])

    result = KubectlClusterValidator(kubectl, inventory).validate()

    assert result.failures == []
    kubectl.list_pods.assert_called_once_with("kube-system")


def test_not_ready_nodes_attributed_to_groups(inventory):
    kubectl = _kubectl([_node("cp-1", ready=False), _node("node-b", ready=False), _node("stray", ready=False)], [])

    failures = KubectlClusterValidator(kubectl, inventory).validate().failures

    by_name = {failure.name: failure for failure in failures}
    assert by_name["cp-1"].group == "control-plane"
    assert by_name["cp-1"].control_plane is True
    assert by_name["node-b"].group == "nodes"
    assert by_name["node-b"].control_plane is False
    assert by_name["stray"].group is None


def test_unhealthy_system_pods():
    kubectl = _kubectl([], [_pod("coredns-1", "Pending"), _pod("kube-proxy-x", "Succeeded")])

    failures = KubectlClusterValidator(kubectl).validate().failures

    assert [failure.name for failure in failures] == ["kube-system/coredns-1"]
    assert failures[0].message == "system pod kube-system/coredns-1 is Pending"
    assert failures[0].group is None


def test_crash_looping_pod_fails_validation():
    crashing = _pod("coredns-1", "Running", ready=False)
    crashing["status"]["containerStatuses"][0]["state"] = {"waiting": {"reason": "CrashLoopBackOff"}}
    kubectl = _kubectl([], [crashing])

    failures = KubectlClusterValidator(kubectl).validate().failures

    assert [failure.message for failure in failures] == ["system pod kube-system/coredns-1 is not ready"]


@pytest.mark.parametrize("conditions,problem", [
    ([{"type": "Ready", "status": "True"}], None),
    ([{"type": "Ready", "status": "False"}], "is not ready"),
    ([], "is not ready"),
])
def test_running_pod_without_container_statuses_uses_ready_condition(conditions, problem):
    pod = {"metadata": {"name": "etcd-0"}, "status": {"phase": "Running", "conditions": conditions}}

    assert pod_problem(pod) == problem


def test_failed_job_pods_are_ignored():
    pods = [
        _pod("cleanup-28391", "Failed", ready=False, owner="Job"),
        _pod("coredns-1", "Failed", ready=False, owner="ReplicaSet"),
    ]

    failures = KubectlClusterValidator(_kubectl([], pods)).validate().failures

    assert [failure.message for failure in failures] == ["system pod kube-system/coredns-1 is Failed"]


class TestWithCloudProvider:
    """Instance groups are re-listed on each validation."""

    def test_instance_without_node_has_not_joined(self, cloud):
        nodes = [
            _node("cp-1", instance_id="ocid1.instance.oc1..cp1"),
            _node("node-a", instance_id="ocid1.instance.oc1..a"),
            _node("node-b", instance_id="ocid1.instance.oc1..b"),
            _node("node-orphan", instance_id="ocid1.instance.oc1..orphan"),
        ]
        validator = KubectlClusterValidator(_kubectl(nodes, []), cloud=cloud)
        assert validator.validate().failures == []

        # a surge replacement launched into the pool but has no node yet
        cloud.groups[1].add_instance(CloudInstance(id="ocid1.instance.oc1..surge", private_ip="10.0.0.7"))

        failures = validator.validate().failures

        assert len(failures) == 1
        assert failures[0].kind == "Machine"
        assert failures[0].message == "machine ocid1.instance.oc1..surge has not yet joined cluster"
        assert failures[0].group == "nodes"

    def test_fresh_groups_attribute_node_failures(self, cloud):
        nodes = [
            _node("cp-1", ready=False, instance_id="ocid1.instance.oc1..cp1"),
            _node("node-a", instance_id="ocid1.instance.oc1..a"),
            _node("node-b", instance_id="ocid1.instance.oc1..b"),
            _node("node-orphan", instance_id="ocid1.instance.oc1..orphan"),
        ]

        failures = KubectlClusterValidator(_kubectl(nodes, []), cloud=cloud).validate().failures

        assert [(failure.name, failure.group, failure.control_plane) for failure in failures] == [
            ("cp-1", "control-plane", True)
        ]
