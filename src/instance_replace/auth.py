"""Authentication module for the OCI cloud handle."""

import logging
from pathlib import Path
from typing import Any, Dict, Tuple

import oci
from oci.auth.signers import InstancePrincipalsSecurityTokenSigner, SecurityTokenSigner
from rich.console import Console

from .models import AuthType, OCIConfig

logger = logging.getLogger(__name__)
console = Console()

DEFAULT_CONFIG_FILE = Path.home() / ".oci" / "config"


class OCIAuthenticator:
    """Resolve an OCI config dict and request signer for a profile."""

    def __init__(self, config: OCIConfig):
        self.config = config

    def authenticate(self) -> Tuple[Dict[str, Any], Any]:
        """
        Load the profile and build a signer.

        Returns:
            Tuple of (config_dict, signer_object)

        Raises:
            RuntimeError: If the profile cannot be loaded or signed for
        """
        try:
            if self.config.auth_type == AuthType.INSTANCE_PRINCIPAL:
                signer = InstancePrincipalsSecurityTokenSigner()
                return {"region": self.config.region}, signer

            oci_config = self._load_config()
            auth_type = self._determine_auth_type()
            self.config.auth_type = auth_type
            signer = self._create_signer(auth_type)
            logger.debug(
                "Authenticated profile '%s' using %s", self.config.profile_name, auth_type.value
            )
            return oci_config, signer
        except Exception as e:
            logger.error(f"Authentication failed: {e}")
            self._print_auth_help()
            raise RuntimeError(f"Failed to authenticate with OCI: {e}") from e

    def _load_config(self) -> Dict[str, Any]:
        """Load the profile from the OCI config file."""
        config_file = Path(self.config.config_file) if self.config.config_file else DEFAULT_CONFIG_FILE
        if not config_file.exists():
            raise FileNotFoundError(f"OCI config file not found: {config_file}")

        oci_config = oci.config.from_file(
            file_location=str(config_file), profile_name=self.config.profile_name
        )
        oci_config["region"] = self.config.region

        self.config.tenancy = oci_config.get("tenancy")
        self.config.user = oci_config.get("user")
        self.config.fingerprint = oci_config.get("fingerprint")
        self.config.key_file = oci_config.get("key_file")
        self.config.security_token_file = oci_config.get("security_token_file")
        self.config.pass_phrase = oci_config.get("pass_phrase")
        return oci_config

    def _determine_auth_type(self) -> AuthType:
        if self.config.security_token_file:
            token_file = Path(self.config.security_token_file).expanduser()
            if not token_file.exists():
                raise FileNotFoundError(
                    f"Security token file not found: {token_file}\n"
                    f"Please run: oci session authenticate --profile-name {self.config.profile_name}"
                )
            return AuthType.SESSION_TOKEN

        if self.config.key_file and self.config.fingerprint:
            if not Path(self.config.key_file).expanduser().exists():
                raise FileNotFoundError(f"Private key file not found: {self.config.key_file}")
            return AuthType.API_KEY

        raise ValueError(
            f"Unable to determine auth type for profile '{self.config.profile_name}'. "
            f"Config must have either security_token_file or (key_file + fingerprint)."
        )

    def _create_signer(self, auth_type: AuthType) -> Any:
        if auth_type == AuthType.SESSION_TOKEN:
            token_file = Path(self.config.security_token_file).expanduser()
            token = token_file.read_text().strip()
            private_key = oci.signer.load_private_key_from_file(
                self.config.key_file, pass_phrase=self.config.pass_phrase
            )
            return SecurityTokenSigner(token, private_key)

        return oci.signer.Signer(
            tenancy=self.config.tenancy,
            user=self.config.user,
            fingerprint=self.config.fingerprint,
            private_key_file_location=self.config.key_file,
            pass_phrase=self.config.pass_phrase,
        )

    def _print_auth_help(self) -> None:
        console.print("\n[red]Authentication Setup Instructions:[/red]")
        console.print(
            f"\n1. For session token authentication (recommended):\n"
            f"   [cyan]oci session authenticate --profile-name {self.config.profile_name} "
            f"--region {self.config.region}[/cyan]\n"
        )
        console.print(
            f"2. For API key authentication, add user, fingerprint, tenancy and key_file "
            f"to the [cyan][{self.config.profile_name}][/cyan] profile.\n"
        )
        console.print(
            "3. On an OCI instance, set [cyan]auth_type: instance_principal[/cyan] for the cluster "
            "in meta.yaml.\n"
        )
