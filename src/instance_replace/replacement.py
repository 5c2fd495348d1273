"""Replacement workflow for a single cluster instance.

Cluster-aware runs go through surge (optional), detach, drain, post-drain
delay, validation and termination. Cloud-only runs go straight to
termination because there is no live cluster state to protect.

Every phase produces a PhaseResult; drain and validation failures are
tolerated or fatal according to the request's policies, termination
failures are always fatal. Nothing already applied is rolled back.
"""

import logging
from typing import Callable, List, Optional

from .clock import CancelToken, Clock
from .errors import (
    CordonFailedError,
    DetachFailedError,
    DrainFailedError,
    InstanceReplaceError,
    OperationCancelledError,
    TerminateFailedError,
)
from .gate import GateDecision, check_preconditions
from .interfaces import CloudProvider, ClusterValidator, KubernetesApi
from .matcher import find_instance
from .models import (
    CloudInstance,
    FailurePolicy,
    Inventory,
    OutcomeStatus,
    Phase,
    PhaseResult,
    PhaseStatus,
    ReplacementOutcome,
    ReplacementRequest,
)
from .validation import ValidationPoller

logger = logging.getLogger(__name__)


class InstanceReplacer:
    """Drive one instance through the replacement phases."""

    def __init__(
        self,
        request: ReplacementRequest,
        cloud: CloudProvider,
        clock: Clock,
        token: CancelToken,
        kube: Optional[KubernetesApi] = None,
        validator: Optional[ClusterValidator] = None,
    ) -> None:
        if not request.cloud_only and (kube is None or validator is None):
            raise ValueError("A Kubernetes client and validator are required unless cloud-only is set")
        self.request = request
        self.cloud = cloud
        self.clock = clock
        self.token = token
        self.kube = kube
        self.validator = validator
        self.results: List[PhaseResult] = []
        self._mutated = False

    def replace(self, instance: CloudInstance) -> ReplacementOutcome:
        steps: List[Callable[[CloudInstance], PhaseResult]] = []
        if self.request.cloud_only:
            logger.warning("Not draining or validating cluster as cloud-only mode is set.")
        else:
            if self.request.surge:
                steps.append(self._surge)
            steps.extend([self._detach, self._drain, self._post_drain_delay, self._validate])
        steps.append(self._terminate)

        for step in steps:
            result = step(instance)
            self.results.append(result)
            if result.status in (PhaseStatus.FAILED, PhaseStatus.CANCELLED):
                return self._finish(instance, result)

        logger.info("Instance %s deleted", instance.id)
        return self._outcome(instance, OutcomeStatus.SUCCEEDED, Phase.DONE)

    def _execute(
        self,
        phase: Phase,
        action: Callable[[], None],
        policy: FailurePolicy = FailurePolicy.FAIL,
    ) -> PhaseResult:
        try:
            self.token.raise_if_cancelled()
            action()
        except OperationCancelledError as exc:
            return PhaseResult(phase, PhaseStatus.CANCELLED, exc)
        except InstanceReplaceError as exc:
            if self.token.cancelled:
                return PhaseResult(
                    phase, PhaseStatus.CANCELLED, OperationCancelledError(self.token.reason or str(exc))
                )
            if policy == FailurePolicy.TOLERATE:
                logger.warning("Ignoring %s error: %s", phase.value, exc)
                return PhaseResult(phase, PhaseStatus.TOLERATED, exc)
            return PhaseResult(phase, PhaseStatus.FAILED, exc)
        return PhaseResult(phase, PhaseStatus.SUCCEEDED)

    def _surge(self, instance: CloudInstance) -> PhaseResult:
        if instance.group is not None and instance.group.is_control_plane:
            logger.warning("Cannot detach control-plane instances. Assuming --surge=false")
            return PhaseResult(Phase.SURGE, PhaseStatus.SKIPPED)

        def detach() -> None:
            logger.info("Detaching instance %s from its instance group", instance.id)
            try:
                self.cloud.detach_instance(instance)
            except Exception as exc:
                raise DetachFailedError(f"failed to detach instance {instance.id}", exc) from exc
            self._mutated = True

        return self._execute(Phase.SURGE, detach)

    def _detach(self, instance: CloudInstance) -> PhaseResult:
        node_name = instance.node_name

        def cordon() -> None:
            logger.info("Cordoning node %s", node_name)
            try:
                self.kube.cordon_node(node_name)
            except Exception as exc:
                raise CordonFailedError(f"failed to cordon node {node_name} during detach", exc) from exc
            self._mutated = True

        return self._execute(Phase.DETACH, cordon, self.request.drain_failure_policy)

    def _drain(self, instance: CloudInstance) -> PhaseResult:
        node_name = instance.node_name

        def drain() -> None:
            logger.info("Draining the node: %s", node_name)
            self._mutated = True
            try:
                self.kube.drain_node(node_name)
            except Exception as exc:
                raise DrainFailedError(f"failed to drain node {node_name}", exc) from exc

        return self._execute(Phase.DRAIN, drain, self.request.drain_failure_policy)

    def _post_drain_delay(self, instance: CloudInstance) -> PhaseResult:
        delay = self.request.post_drain_delay
        if delay <= 0:
            return PhaseResult(Phase.POST_DRAIN_DELAY, PhaseStatus.SKIPPED)

        def pause() -> None:
            logger.info("Waiting for %gs after drain", delay)
            self.clock.sleep(delay, self.token)

        return self._execute(Phase.POST_DRAIN_DELAY, pause)

    def _validate(self, instance: CloudInstance) -> PhaseResult:
        if self.request.validate_count == 0:
            logger.warning("Skipping cluster validation because validate-count was 0")
            return PhaseResult(Phase.VALIDATE, PhaseStatus.SKIPPED)

        poller = ValidationPoller(
            self.validator,
            self.clock,
            self.token,
            validate_count=self.request.validate_count,
            poll_interval=self.request.validation_poll_interval,
            success_duration=self.request.validation_success_duration,
            timeout=self.request.validation_timeout,
            group=instance.group,
        )
        return self._execute(Phase.VALIDATE, poller.wait_until_healthy, self.request.validation_failure_policy)

    def _terminate(self, instance: CloudInstance) -> PhaseResult:
        node_name = instance.node_name

        def terminate() -> None:
            if not self.request.cloud_only and node_name:
                # Replacements may reuse the name; drop the cordoned Node object first.
                logger.info("Deleting node %s from kubernetes", node_name)
                try:
                    self.kube.delete_node(node_name)
                except Exception as exc:
                    raise TerminateFailedError(f"error deleting node {node_name}", exc) from exc
                self._mutated = True
                self.token.raise_if_cancelled()

            logger.info("Terminating instance %s", instance.id)
            try:
                self.cloud.terminate_instance(instance)
            except Exception as exc:
                raise TerminateFailedError(f"error deleting instance {instance.id}", exc) from exc

        return self._execute(Phase.TERMINATE, terminate)

    def _finish(self, instance: CloudInstance, result: PhaseResult) -> ReplacementOutcome:
        if result.status == PhaseStatus.CANCELLED:
            logger.warning("Replacement of %s cancelled during %s: %s", instance.id, result.phase.value, result.error)
            status = OutcomeStatus.CANCELLED
        else:
            logger.error("Replacement of %s failed during %s: %s", instance.id, result.phase.value, result.error)
            status = OutcomeStatus.FAILED
        return self._outcome(instance, status, result.phase, result.error)

    def _outcome(
        self,
        instance: CloudInstance,
        status: OutcomeStatus,
        phase: Phase,
        error: Optional[Exception] = None,
    ) -> ReplacementOutcome:
        return ReplacementOutcome(
            status=status,
            phase=phase,
            error=error,
            partial_mutation=self._mutated and status != OutcomeStatus.SUCCEEDED,
            instance_id=instance.id,
            node_name=instance.node_name,
            phases=list(self.results),
        )


def delete_instance(
    request: ReplacementRequest,
    inventory: Inventory,
    cloud: CloudProvider,
    clock: Clock,
    token: CancelToken,
    kube: Optional[KubernetesApi] = None,
    validator: Optional[ClusterValidator] = None,
) -> ReplacementOutcome:
    """Locate, gate and replace the instance named by ``request.identifier``."""
    try:
        match = find_instance(inventory, request.identifier, request.cloud_only, strict=request.strict_match)
        decision = check_preconditions(match, request)
    except InstanceReplaceError as exc:
        logger.error("%s", exc)
        return ReplacementOutcome(status=OutcomeStatus.FAILED, phase=Phase.PRECHECK, error=exc)

    if decision == GateDecision.CONFIRMATION_REQUIRED:
        return ReplacementOutcome(
            status=OutcomeStatus.CONFIRMATION_REQUIRED,
            instance_id=match.id,
            node_name=match.node_name,
        )

    replacer = InstanceReplacer(request, cloud, clock, token, kube=kube, validator=validator)
    return replacer.replace(match)
