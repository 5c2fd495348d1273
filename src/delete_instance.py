#!/usr/bin/env python3
"""
Delete (and optionally replace) a single instance of a managed cluster.

By default the instance is detached from its instance pool so a replacement
launches, then its node is cordoned and drained, the cluster is validated and
the instance is terminated.

Examples:
  delete_instance.py --cluster prod-a ocid1.instance.oc1.phx.example --yes
  delete_instance.py --cluster prod-a 10.0.10.5 --yes
  delete_instance.py --cluster prod-a --cloudonly ocid1.instance.oc1.phx.example --yes
"""

import argparse
import logging
import math
import re
import signal
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from instance_replace.clock import CancelToken, SystemClock
from instance_replace.cluster_validator import KubectlClusterValidator
from instance_replace.errors import ConfigNotFoundError, KubernetesUnreachableError
from instance_replace.inventory import build_inventory, list_cluster_members
from instance_replace.models import (
    ClusterMember,
    FailurePolicy,
    OutcomeStatus,
    ReplacementOutcome,
    ReplacementRequest,
)
from instance_replace.replacement import delete_instance
from instance_replace.utils.display import (
    display_confirmation_required,
    display_error,
    display_instance_found,
    display_outcome,
)
from instance_replace.utils.session import build_cloud, build_kubectl
from instance_replace.utils.yamler import load_cluster_config

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_META_FILE = "meta.yaml"
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: str) -> float:
    """Parse ``90``, ``30s``, ``15m`` or ``1h30m`` into seconds."""
    text = value.strip()
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds) or seconds < 0:
            raise argparse.ArgumentTypeError(f"invalid duration: {value!r}")
        return seconds

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position == 0 or position != len(text):
        raise argparse.ArgumentTypeError(f"invalid duration: {value!r}")
    return total


def configure_logging(verbose: bool = False, log_dir: Optional[Path] = None) -> Optional[Path]:
    handlers: List[logging.Handler] = [RichHandler(rich_tracebacks=True)]
    log_path = None
    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        log_path = log_dir / f"delete_instance_{timestamp}.log"
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )
    return log_path


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Delete an instance. By default, it will detach the instance from the "
        "instance group, drain it, then terminate it.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:", 1)[1] if __doc__ else None,
    )
    parser.add_argument("instance", help="OCID of the instance or name of the node to delete.")
    parser.add_argument("--cluster", required=True, help="Cluster name as configured in meta.yaml.")
    parser.add_argument(
        "--meta-file",
        type=Path,
        default=Path(DEFAULT_META_FILE),
        help="Path to meta.yaml (default: %(default)s).",
    )
    parser.add_argument(
        "--cloudonly",
        action="store_true",
        help="Perform deletion without confirming progress with Kubernetes.",
    )
    parser.add_argument(
        "--surge",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Surge by detaching the instance from its instance pool before deletion.",
    )
    parser.add_argument(
        "--fail-on-drain-error",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Fail if draining a node fails.",
    )
    parser.add_argument(
        "--fail-on-validate-error",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Fail if the cluster fails to validate.",
    )
    parser.add_argument(
        "--post-drain-delay",
        type=parse_duration,
        default=5.0,
        help="Time to wait after draining the node (default: 5s).",
    )
    parser.add_argument(
        "--validation-timeout",
        type=parse_duration,
        default=900.0,
        help="Maximum time to wait for the cluster to validate (default: 15m).",
    )
    parser.add_argument(
        "--validate-count",
        type=int,
        default=2,
        help="Number of consecutive successful validations required (default: %(default)s).",
    )
    parser.add_argument(
        "--validation-poll-interval",
        type=parse_duration,
        default=30.0,
        help="Time between validation attempts after a failure (default: 30s).",
    )
    parser.add_argument(
        "--validation-success-duration",
        type=parse_duration,
        default=10.0,
        help="How long the cluster must stay healthy before it counts as validated (default: 10s).",
    )
    parser.add_argument(
        "--strict-match",
        action="store_true",
        help="Fail instead of using the first match when the identifier matches several instances.",
    )
    parser.add_argument(
        "--deadline",
        type=parse_duration,
        help="Cancel the operation if it has not finished within this duration.",
    )
    parser.add_argument("-y", "--yes", action="store_true", help="Immediately delete the instance.")
    parser.add_argument("--log-dir", type=Path, help="Also write a timestamped log file to this directory.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def build_request(args: argparse.Namespace) -> ReplacementRequest:
    return ReplacementRequest(
        identifier=args.instance,
        cloud_only=args.cloudonly,
        surge=args.surge,
        drain_failure_policy=FailurePolicy.FAIL if args.fail_on_drain_error else FailurePolicy.TOLERATE,
        validation_failure_policy=(
            FailurePolicy.FAIL if args.fail_on_validate_error else FailurePolicy.TOLERATE
        ),
        post_drain_delay=args.post_drain_delay,
        validation_timeout=args.validation_timeout,
        validate_count=args.validate_count,
        validation_poll_interval=args.validation_poll_interval,
        validation_success_duration=args.validation_success_duration,
        confirmed=args.yes,
        strict_match=args.strict_match,
    )


def report(outcome: ReplacementOutcome) -> int:
    if outcome.instance_id:
        display_instance_found(outcome.instance_id, outcome.node_name)
    if outcome.status == OutcomeStatus.CONFIRMATION_REQUIRED:
        display_confirmation_required()
    else:
        display_outcome(outcome)
    return 0 if outcome.ok else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_arguments(argv)
    log_path = configure_logging(verbose=args.verbose, log_dir=args.log_dir)
    if log_path:
        logger.info("Logging to %s", log_path)

    try:
        request = build_request(args)
    except ValidationError as exc:
        display_error(f"Invalid arguments: {exc}")
        return 1

    meta_file = args.meta_file.expanduser().resolve()
    try:
        cluster = load_cluster_config(str(meta_file), args.cluster)
    except (ConfigNotFoundError, FileNotFoundError, yaml.YAMLError) as exc:
        display_error(f"Configuration Error: {exc}")
        return 1

    clock = SystemClock()
    token = CancelToken(clock, timeout=args.deadline)

    def _interrupt(_signum, _frame) -> None:
        console.print("\n[yellow]Interrupt received; stopping before the next step.[/yellow]")
        token.cancel("interrupted by operator")

    previous_handler = signal.signal(signal.SIGINT, _interrupt)
    try:
        cloud = build_cloud(cluster)
        if cloud is None:
            return 1

        kube = None
        validator = None
        members: Optional[List[ClusterMember]] = None
        if not request.cloud_only:
            kube = build_kubectl(cluster)
            try:
                members = list_cluster_members(kube)
            except KubernetesUnreachableError as exc:
                display_error(str(exc))
                return 1

        try:
            inventory = build_inventory(cloud, members)
        except Exception as exc:
            display_error(f"Failed to list instance groups: {exc}")
            return 1
        if kube is not None:
            validator = KubectlClusterValidator(kube, inventory, cloud=cloud)

        outcome = delete_instance(
            request,
            inventory,
            cloud,
            clock,
            token,
            kube=kube,
            validator=validator,
        )
        return report(outcome)
    finally:
        signal.signal(signal.SIGINT, previous_handler)


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
