"""Preconditions checked before any mutation."""

import logging
from enum import Enum
from typing import Optional

from .errors import InstanceNotFoundError, NotClusterMemberError
from .models import CloudInstance, ReplacementRequest

logger = logging.getLogger(__name__)


class GateDecision(str, Enum):
    PROCEED = "proceed"
    CONFIRMATION_REQUIRED = "confirmation-required"


def check_preconditions(
    match: Optional[CloudInstance], request: ReplacementRequest
) -> GateDecision:
    """Decide whether the replacement may mutate anything.

    Existence is checked first, then cluster membership (unless cloud-only),
    and only then confirmation, so an unconfirmed run still reports what it
    would have deleted.
    """
    if match is None:
        raise InstanceNotFoundError(request.identifier)

    if request.cloud_only:
        logger.info("Instance %s found for deletion", match.id)
    elif match.member is None:
        raise NotClusterMemberError(match.id)
    else:
        logger.info("Instance %s (%s) found for deletion", match.id, match.member.name)

    if not request.confirmed:
        return GateDecision.CONFIRMATION_REQUIRED
    return GateDecision.PROCEED
