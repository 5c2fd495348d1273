"""Resolve an instance OCID or node name to a single inventory entry."""

import logging
from typing import List, Optional

from .errors import AmbiguousInstanceError, InstanceNotFoundError
from .models import CloudInstance, Inventory

logger = logging.getLogger(__name__)


def _matches(instance: CloudInstance, identifier: str, cloud_only: bool) -> bool:
    if instance.id == identifier:
        return True
    return not cloud_only and instance.member is not None and instance.member.name == identifier


def find_matches(inventory: Inventory, identifier: str, cloud_only: bool) -> List[CloudInstance]:
    """All instances matching ``identifier``, in scan order.

    Groups are scanned in inventory order; within a group the ready set is
    scanned before the need-update set.
    """
    matches: List[CloudInstance] = []
    for group in inventory.groups:
        for partition in (group.ready, group.need_update):
            for instance in partition:
                if _matches(instance, identifier, cloud_only):
                    matches.append(instance)
    return matches


def find_instance(
    inventory: Inventory,
    identifier: str,
    cloud_only: bool,
    strict: bool = False,
) -> Optional[CloudInstance]:
    """Return the first instance matching ``identifier`` or None.

    When an identifier matches more than one instance (an OCID equal to another
    instance's node name) the first match wins; ``strict`` turns that into an error.
    """
    matches = find_matches(inventory, identifier, cloud_only)
    if not matches:
        return None

    if len(matches) > 1:
        candidates = [instance.id for instance in matches]
        if strict:
            raise AmbiguousInstanceError(identifier, candidates)
        logger.warning(
            "Identifier %s matches %d instances (%s); using %s",
            identifier,
            len(matches),
            ", ".join(candidates),
            matches[0].id,
        )
    return matches[0]


def match_instance(
    inventory: Inventory,
    identifier: str,
    cloud_only: bool,
    strict: bool = False,
) -> CloudInstance:
    instance = find_instance(inventory, identifier, cloud_only, strict=strict)
    if instance is None:
        raise InstanceNotFoundError(identifier)
    return instance
