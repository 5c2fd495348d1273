"""Tests for the delete_instance command line entry point."""

import argparse
import logging

import pytest
from oci.exceptions import ServiceError

import delete_instance
from instance_replace.models import CloudInstance, FailurePolicy

from tests.conftest import ManualClock

META = """
clusters:
  prod-a:
    region: us-phoenix-1
    compartment_id: ocid1.compartment.oc1..prod
    instance_groups:
      - name: control-plane
        role: control-plane
        instance_pool_id: ocid1.instancepool.oc1..cp
      - name: nodes
        instance_pool_id: ocid1.instancepool.oc1..nodes
"""


@pytest.fixture
def meta_file(tmp_path):
    path = tmp_path / "meta.yaml"
    path.write_text(META, encoding="utf-8")
    return path


@pytest.fixture
def wired(monkeypatch, cloud, kube, validator):
    """Route the CLI to the in-memory fakes."""
    monkeypatch.setattr(delete_instance, "configure_logging", lambda **_kwargs: None)
    monkeypatch.setattr(delete_instance, "SystemClock", ManualClock)
    monkeypatch.setattr(delete_instance, "build_cloud", lambda cluster: cloud)
    monkeypatch.setattr(delete_instance, "build_kubectl", lambda cluster: kube)
    monkeypatch.setattr(delete_instance, "KubectlClusterValidator", lambda kubectl, inventory, cloud=None: validator)


def _argv(meta_file, *extra):
    return ["--cluster", "prod-a", "--meta-file", str(meta_file), *extra]


@pytest.mark.parametrize("text,seconds", [
    ("90", 90.0),
    ("30s", 30.0),
    ("15m", 900.0),
    ("1h30m", 5400.0),
    ("500ms", 0.5),
])
def test_parse_duration(text, seconds):
    assert delete_instance.parse_duration(text) == seconds


@pytest.mark.parametrize("text", ["", "soon", "5d", "m5", "10s later", "-5", "-1m", "inf", "nan"])
def test_parse_duration_rejects_garbage(text):
    with pytest.raises(argparse.ArgumentTypeError):
        delete_instance.parse_duration(text)


def test_flags_map_onto_request():
    args = delete_instance.parse_arguments([
        "--cluster", "prod-a", "node-a",
        "--no-surge",
        "--no-fail-on-drain-error",
        "--validate-count", "0",
        "--post-drain-delay", "1m",
        "--validation-timeout", "5m",
        "--cloudonly",
        "--yes",
    ])

    request = delete_instance.build_request(args)

    assert request.identifier == "node-a"
    assert request.surge is False
    assert request.cloud_only is True
    assert request.confirmed is True
    assert request.drain_failure_policy == FailurePolicy.TOLERATE
    assert request.validation_failure_policy == FailurePolicy.FAIL
    assert request.validate_count == 0
    assert request.post_drain_delay == 60.0
    assert request.validation_timeout == 300.0


def test_replaces_node(wired, meta_file, calls):
    exit_code = delete_instance.main(_argv(meta_file, "ip-10-0-0-5.ec2.internal", "--yes"))

    assert exit_code == 0
    assert calls[-1] == ("terminate", "ocid1.instance.oc1..a")


def test_without_yes_is_a_no_op(wired, meta_file, calls, capsys):
    exit_code = delete_instance.main(_argv(meta_file, "ip-10-0-0-5.ec2.internal"))

    assert exit_code == 0
    assert calls == []
    assert "Must specify --yes to delete instance" in capsys.readouterr().out


def test_cloud_only_skips_kubernetes(wired, monkeypatch, meta_file, calls):
    def _no_kubectl(cluster):
        raise AssertionError("kubectl must not be used in cloud-only mode")

    monkeypatch.setattr(delete_instance, "build_kubectl", _no_kubectl)

    exit_code = delete_instance.main(_argv(meta_file, "ocid1.instance.oc1..orphan", "--cloudonly", "--yes"))

    assert exit_code == 0
    assert calls == [("terminate", "ocid1.instance.oc1..orphan")]


def test_failed_replacement_exits_non_zero(wired, meta_file, kube, calls):
    kube.drain_error = RuntimeError("cannot evict pod")

    exit_code = delete_instance.main(_argv(meta_file, "ip-10-0-0-5.ec2.internal", "--yes"))

    assert exit_code == 1
    assert ("terminate", "ocid1.instance.oc1..a") not in calls


def test_not_cluster_member_exits_non_zero(wired, meta_file, calls):
    exit_code = delete_instance.main(_argv(meta_file, "ocid1.instance.oc1..orphan", "--yes"))

    assert exit_code == 1
    assert calls == []


def test_unreachable_kubernetes(wired, meta_file, kube, calls, capsys):
    kube.list_error = ConnectionError("connection refused")

    exit_code = delete_instance.main(_argv(meta_file, "ip-10-0-0-5.ec2.internal", "--yes"))

    assert exit_code == 1
    assert calls == []
    assert "Unable to reach the kubernetes API" in capsys.readouterr().out


def test_unknown_cluster(wired, meta_file):
    exit_code = delete_instance.main(
        ["--cluster", "staging", "--meta-file", str(meta_file), "node-a", "--yes"]
    )

    assert exit_code == 1


def test_cloud_handle_failure(wired, monkeypatch, meta_file):
    monkeypatch.setattr(delete_instance, "build_cloud", lambda cluster: None)

    assert delete_instance.main(_argv(meta_file, "node-a", "--yes")) == 1


def test_malformed_meta_file(wired, tmp_path, calls, capsys):
    path = tmp_path / "meta.yaml"
    path.write_text("clusters: [unclosed\n", encoding="utf-8")

    exit_code = delete_instance.main(_argv(path, "node-a", "--yes"))

    assert exit_code == 1
    assert calls == []
    assert "Configuration Error" in capsys.readouterr().out


@pytest.mark.parametrize("error", [
    ServiceError(500, "InternalError", {}, "instance pool listing failed"),
    RuntimeError("instance pool listing failed"),
])
def test_instance_group_listing_failure(wired, monkeypatch, meta_file, cloud, calls, capsys, error):
    def _fail():
        raise error

    monkeypatch.setattr(cloud, "list_instance_groups", _fail)

    exit_code = delete_instance.main(_argv(meta_file, "ip-10-0-0-5.ec2.internal", "--yes"))

    assert exit_code == 1
    assert calls == []
    assert "Failed to list instance groups" in capsys.readouterr().out


def test_instance_in_two_groups(wired, meta_file, cloud, calls, capsys):
    cloud.groups[0].add_instance(CloudInstance(id="ocid1.instance.oc1..a", private_ip="10.0.0.5"))

    exit_code = delete_instance.main(_argv(meta_file, "ip-10-0-0-5.ec2.internal", "--yes"))

    assert exit_code == 1
    assert calls == []
    assert "appears in both" in capsys.readouterr().out


def test_invalid_request(wired, meta_file, calls):
    exit_code = delete_instance.main(_argv(meta_file, "node-a", "--validate-count", "-1", "--yes"))

    assert exit_code == 1
    assert calls == []


def test_configure_logging_writes_log_file(tmp_path):
    root = logging.getLogger()
    previous_handlers = list(root.handlers)
    previous_level = root.level
    try:
        log_path = delete_instance.configure_logging(verbose=True, log_dir=tmp_path / "logs")
        logging.getLogger("instance_replace").info("hello from the test")
        for handler in root.handlers:
            handler.flush()

        assert log_path.name.startswith("delete_instance_")
        assert "| INFO | hello from the test" in log_path.read_text(encoding="utf-8")
        assert root.level == logging.DEBUG
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for handler in previous_handlers:
            root.addHandler(handler)
        root.setLevel(previous_level)
