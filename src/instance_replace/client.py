"""OCI client wrapping the compute and compute-management services."""

import logging
from typing import Any, List, Optional

import oci
from oci.core.models import DetachInstancePoolInstanceDetails
from oci.pagination import list_call_get_all_results
from tenacity import retry, stop_after_attempt, wait_exponential

from .auth import OCIAuthenticator
from .models import AuthType, OCIConfig

logger = logging.getLogger(__name__)


class OCIClient:
    """OCI client with lazily created service clients."""

    def __init__(
        self,
        region: str,
        profile_name: str = "DEFAULT",
        config_file: Optional[str] = None,
        auth_type: Optional[AuthType] = None,
        retry_strategy: Optional[oci.retry.RetryStrategyBuilder] = None,
    ):
        """
        Initialize OCI client with authentication.

        Args:
            region: OCI region name (e.g., 'us-phoenix-1')
            profile_name: OCI config profile name
            config_file: Optional path to config file (defaults to ~/.oci/config)
            auth_type: Force an auth type; inferred from the profile when omitted
            retry_strategy: Optional retry strategy for API calls
        """
        self.config = OCIConfig(
            region=region, profile_name=profile_name, config_file=config_file, auth_type=auth_type
        )
        self.authenticator = OCIAuthenticator(self.config)
        self.retry_strategy = retry_strategy or oci.retry.DEFAULT_RETRY_STRATEGY

        self._compute_client: Optional[oci.core.ComputeClient] = None
        self._compute_management_client: Optional[oci.core.ComputeManagementClient] = None
        self._network_client: Optional[oci.core.VirtualNetworkClient] = None

        self.oci_config, self.signer = self.authenticator.authenticate()

    @property
    def compute_client(self) -> oci.core.ComputeClient:
        """Lazy-load compute client."""
        if not self._compute_client:
            self._compute_client = oci.core.ComputeClient(
                self.oci_config, signer=self.signer, retry_strategy=self.retry_strategy
            )
        return self._compute_client

    @property
    def compute_management_client(self) -> oci.core.ComputeManagementClient:
        """Lazy-load compute management (instance pool) client."""
        if not self._compute_management_client:
            self._compute_management_client = oci.core.ComputeManagementClient(
                self.oci_config, signer=self.signer, retry_strategy=self.retry_strategy
            )
        return self._compute_management_client

    @property
    def network_client(self) -> oci.core.VirtualNetworkClient:
        """Lazy-load network client."""
        if not self._network_client:
            self._network_client = oci.core.VirtualNetworkClient(
                self.oci_config, signer=self.signer, retry_strategy=self.retry_strategy
            )
        return self._network_client

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=2, max=10), reraise=True)
    def get_instance_pool(self, instance_pool_id: str) -> Any:
        return self.compute_management_client.get_instance_pool(instance_pool_id).data

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=2, max=10), reraise=True)
    def list_instance_pool_instances(self, compartment_id: str, instance_pool_id: str) -> List[Any]:
        """List the instance summaries of an instance pool, all pages."""
        response = list_call_get_all_results(
            self.compute_management_client.list_instance_pool_instances,
            compartment_id,
            instance_pool_id,
        )
        return list(getattr(response, "data", []) or [])

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=2, max=10), reraise=True)
    def get_primary_private_ip(self, compartment_id: str, instance_id: str) -> Optional[str]:
        """Private IP of the instance's primary VNIC, if any."""
        attachments = list_call_get_all_results(
            self.compute_client.list_vnic_attachments,
            compartment_id,
            instance_id=instance_id,
        ).data
        if not attachments:
            return None
        for attachment in attachments:
            vnic = self.network_client.get_vnic(attachment.vnic_id).data
            if getattr(vnic, "is_primary", False):
                return vnic.private_ip
        return None

    def detach_instance_pool_instance(self, instance_pool_id: str, instance_id: str) -> Optional[str]:
        """Detach an instance without shrinking the pool, so the pool launches a replacement.

        Returns the work request ID, if OCI returned one.
        """
        details = DetachInstancePoolInstanceDetails(
            instance_id=instance_id,
            is_decrement_size=False,
            is_auto_terminate=False,
        )
        response = self.compute_management_client.detach_instance_pool_instance(
            instance_pool_id=instance_pool_id,
            detach_instance_pool_instance_details=details,
        )
        return response.headers.get("opc-work-request-id")

    def terminate_instance(self, instance_id: str) -> None:
        self.compute_client.terminate_instance(instance_id, preserve_boot_volume=False)
