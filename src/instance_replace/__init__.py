"""Safe deletion and replacement of a single cluster instance."""

from .clock import CancelToken, SystemClock
from .errors import InstanceReplaceError
from .matcher import find_instance, match_instance
from .models import (
    CloudInstance,
    CloudInstanceGroup,
    ClusterMember,
    FailurePolicy,
    Inventory,
    ReplacementOutcome,
    ReplacementRequest,
)
from .replacement import InstanceReplacer, delete_instance

__all__ = [
    "CancelToken",
    "SystemClock",
    "InstanceReplaceError",
    "find_instance",
    "match_instance",
    "CloudInstance",
    "CloudInstanceGroup",
    "ClusterMember",
    "FailurePolicy",
    "Inventory",
    "ReplacementOutcome",
    "ReplacementRequest",
    "InstanceReplacer",
    "delete_instance",
]
