"""Data models for instance replacement."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuthType(str, Enum):
    """Authentication types supported."""
    SESSION_TOKEN = "session_token"
    API_KEY = "api_key"
    INSTANCE_PRINCIPAL = "instance_principal"


class GroupRole(str, Enum):
    """Role of an instance group within the cluster."""
    CONTROL_PLANE = "control-plane"
    NODE = "node"


class InstanceStatus(str, Enum):
    """Partition an instance belongs to within its group."""
    READY = "ready"
    NEEDS_UPDATE = "needs-update"


class FailurePolicy(str, Enum):
    """What to do when a tolerable phase fails."""
    FAIL = "fail"
    TOLERATE = "tolerate"


class Phase(str, Enum):
    """Phases of a single instance replacement."""
    PRECHECK = "precheck"
    SURGE = "surge"
    DETACH = "detach"
    DRAIN = "drain"
    POST_DRAIN_DELAY = "post-drain-delay"
    VALIDATE = "validate"
    TERMINATE = "terminate"
    DONE = "done"


class PhaseStatus(str, Enum):
    SUCCEEDED = "succeeded"
    TOLERATED = "tolerated"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    CONFIRMATION_REQUIRED = "confirmation-required"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ClusterMember:
    """Projection of a live Kubernetes node."""
    name: str
    ready: bool = False
    provider_id: Optional[str] = None
    internal_ip: Optional[str] = None
    unschedulable: bool = False


@dataclass
class CloudInstance:
    """A cloud compute instance, optionally correlated to a cluster member."""
    id: str
    group: Optional["CloudInstanceGroup"] = field(default=None, repr=False, compare=False)
    member: Optional[ClusterMember] = None
    status: InstanceStatus = InstanceStatus.READY
    private_ip: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def node_name(self) -> Optional[str]:
        return self.member.name if self.member else None


@dataclass
class CloudInstanceGroup:
    """Instances of one instance group, split into ready and need-update."""
    name: str
    group_id: str
    role: GroupRole = GroupRole.NODE
    ready: List[CloudInstance] = field(default_factory=list)
    need_update: List[CloudInstance] = field(default_factory=list)

    @property
    def is_control_plane(self) -> bool:
        return self.role == GroupRole.CONTROL_PLANE

    def add_instance(self, instance: CloudInstance) -> CloudInstance:
        """Attach an instance to the partition named by its status."""
        instance.group = self
        if instance.status == InstanceStatus.NEEDS_UPDATE:
            self.need_update.append(instance)
        else:
            self.ready.append(instance)
        return instance

    def instances(self) -> List[CloudInstance]:
        return [*self.ready, *self.need_update]


@dataclass
class Inventory:
    """Snapshot of cloud instances grouped by instance group, in scan order."""
    groups: List[CloudInstanceGroup] = field(default_factory=list)

    def __post_init__(self) -> None:
        seen = {}
        for group in self.groups:
            for instance in group.instances():
                if instance.id in seen:
                    raise ValueError(
                        f"Instance {instance.id} appears in both {seen[instance.id]} and {group.name}"
                    )
                seen[instance.id] = group.name

    def instances(self) -> List[CloudInstance]:
        return [instance for group in self.groups for instance in group.instances()]


@dataclass
class ValidationFailure:
    """A single reason the cluster did not validate."""
    kind: str
    name: str
    message: str
    group: Optional[str] = None
    control_plane: bool = False


@dataclass
class ValidationResult:
    failures: List[ValidationFailure] = field(default_factory=list)

    def relevant_failures(self, group: Optional[CloudInstanceGroup]) -> List[ValidationFailure]:
        """Failures that should block replacing an instance of ``group``.

        Failures not tied to a group, and failures in control-plane groups, always count.
        """
        if group is None:
            return list(self.failures)
        return [
            failure
            for failure in self.failures
            if failure.group is None or failure.control_plane or failure.group == group.name
        ]


@dataclass
class PhaseResult:
    phase: Phase
    status: PhaseStatus
    error: Optional[Exception] = None


@dataclass
class ReplacementOutcome:
    """Terminal result of one replacement request."""
    status: OutcomeStatus
    phase: Optional[Phase] = None
    error: Optional[Exception] = None
    partial_mutation: bool = False
    instance_id: Optional[str] = None
    node_name: Optional[str] = None
    phases: List[PhaseResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status in (OutcomeStatus.SUCCEEDED, OutcomeStatus.CONFIRMATION_REQUIRED)


class ReplacementRequest(BaseModel):
    """Configuration for a single instance replacement; immutable once built."""
    model_config = ConfigDict(frozen=True)

    identifier: str = Field(min_length=1)
    cloud_only: bool = False
    surge: bool = True
    drain_failure_policy: FailurePolicy = FailurePolicy.FAIL
    validation_failure_policy: FailurePolicy = FailurePolicy.FAIL
    post_drain_delay: float = Field(default=5.0, ge=0)
    validation_timeout: float = Field(default=900.0, ge=0)
    validate_count: int = Field(default=2, ge=0)
    validation_poll_interval: float = Field(default=30.0, gt=0)
    validation_success_duration: float = Field(default=10.0, ge=0)
    confirmed: bool = False
    strict_match: bool = False


class InstanceGroupConfig(BaseModel):
    """Instance group entry from the cluster configuration."""
    name: str
    instance_pool_id: str
    role: GroupRole = GroupRole.NODE


class ClusterConfig(BaseModel):
    """Cluster configuration model with validation."""
    model_config = ConfigDict(validate_assignment=True)

    name: str
    region: str
    compartment_id: str
    profile: str = "DEFAULT"
    auth_type: Optional[AuthType] = None
    config_file: Optional[str] = None
    kube_context: Optional[str] = None
    kubeconfig: Optional[str] = None
    drain_timeout: float = Field(default=300.0, gt=0)
    instance_groups: List[InstanceGroupConfig] = Field(default_factory=list)


class OCIConfig(BaseModel):
    """OCI configuration model with validation."""
    model_config = ConfigDict(validate_assignment=True)

    region: str
    profile_name: str = "DEFAULT"
    config_file: Optional[str] = None
    tenancy: Optional[str] = None
    user: Optional[str] = None
    fingerprint: Optional[str] = None
    key_file: Optional[str] = None
    security_token_file: Optional[str] = None
    pass_phrase: Optional[str] = None
    auth_type: Optional[AuthType] = None
