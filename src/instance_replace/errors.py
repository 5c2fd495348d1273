"""Exceptions raised while locating and replacing an instance."""

from typing import List, Optional


class InstanceReplaceError(Exception):
    """Base class for replacement errors."""


class ConfigNotFoundError(InstanceReplaceError):
    """Custom exception for configuration not found errors."""


class InstanceNotFoundError(InstanceReplaceError):
    def __init__(self, identifier: str):
        super().__init__(f"could not find instance {identifier}")
        self.identifier = identifier


class AmbiguousInstanceError(InstanceReplaceError):
    def __init__(self, identifier: str, candidates: List[str]):
        super().__init__(
            f"identifier {identifier} matches multiple instances: {', '.join(candidates)}"
        )
        self.identifier = identifier
        self.candidates = candidates


class NotClusterMemberError(InstanceReplaceError):
    def __init__(self, instance_id: str):
        super().__init__(
            f"error finding node name for instance: {instance_id}. "
            "Instance is not a member of the cluster; use --cloudonly to do a deletion "
            "without confirming progress with the k8s API"
        )
        self.instance_id = instance_id


class KubernetesUnreachableError(InstanceReplaceError):
    def __init__(self, cause: Exception):
        super().__init__(
            f"listing nodes in cluster: {cause}. Unable to reach the kubernetes API; "
            "use --cloudonly to do a deletion without confirming progress with the k8s API"
        )


class KubectlError(InstanceReplaceError):
    """A kubectl invocation exited non-zero."""

    def __init__(self, command: List[str], returncode: int, stderr: str = ""):
        message = f"{' '.join(command)} exited with {returncode}"
        if stderr:
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class PhaseError(InstanceReplaceError):
    """Failure of a collaborator call during a replacement phase."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.cause = cause


class DetachFailedError(PhaseError):
    pass


class DrainFailedError(PhaseError):
    pass


class CordonFailedError(DrainFailedError):
    """Cordoning the node failed before any pod was evicted."""


class TerminateFailedError(PhaseError):
    pass


class ValidationTimedOutError(InstanceReplaceError):
    def __init__(self, timeout: float, last_failures: Optional[List[str]] = None):
        message = f"cluster did not validate within a duration of {timeout:g}s"
        if last_failures:
            message = f"{message} (last failures: {', '.join(last_failures)})"
        super().__init__(message)
        self.timeout = timeout
        self.last_failures = last_failures or []


class OperationCancelledError(InstanceReplaceError):
    def __init__(self, reason: str = "operation cancelled"):
        super().__init__(reason)
        self.reason = reason


class ValidationCancelledError(OperationCancelledError):
    pass
