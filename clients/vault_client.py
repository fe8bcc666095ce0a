"""
HashiCorp Vault access for RepairHub secrets.

The process logs in once with AppRole (VAULT_ADDR, VAULT_ROLE_ID,
VAULT_SECRET_ID, optional VAULT_NAMESPACE) and reads KV v2 secrets under
'repairhub/'. Missing configuration or a failed login stops startup.
"""

import logging
import os
from typing import Dict

import hvac
from hvac.exceptions import InvalidPath, Unauthorized, Forbidden

logger = logging.getLogger(__name__)

_SECRET_PREFIX = "repairhub"

# Process-wide client and secret cache
_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, str] = {}


class VaultError(Exception):
    """Vault login failed. The app can't run without its secrets."""


class VaultClient:
    """AppRole-authenticated reader of 'repairhub/' KV v2 secrets."""

    def __init__(self, vault_addr: str | None = None, vault_namespace: str | None = None):
        """
        Log in to Vault.

        Raises:
            ValueError: If VAULT_ADDR or the AppRole credentials are missing
            VaultError: If the login is refused
        """
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        if not self.vault_addr:
            raise ValueError("VAULT_ADDR environment variable is required")

        role_id = os.getenv("VAULT_ROLE_ID")
        secret_id = os.getenv("VAULT_SECRET_ID")
        if not (role_id and secret_id):
            raise ValueError("VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required")

        namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        if namespace:
            self.client = hvac.Client(url=self.vault_addr, namespace=namespace)
        else:
            self.client = hvac.Client(url=self.vault_addr)

        self._login(role_id, secret_id)
        logger.info(f"Vault ready at {self.vault_addr}")

    def _login(self, role_id: str, secret_id: str) -> None:
        try:
            auth = self.client.auth.approle.login(role_id=role_id, secret_id=secret_id)
        except (Unauthorized, Forbidden) as e:
            logger.error(f"AppRole login refused: {e}")
            raise VaultError(f"AppRole authentication failed: {e}")

        self.client.token = auth["auth"]["client_token"]
        if not self.client.is_authenticated():
            raise VaultError("Vault token not accepted after AppRole login")

    def get_secret(self, path: str, field: str) -> str:
        """
        Read one field of a secret under 'repairhub/'.

        Args:
            path: Path below the prefix, e.g. 'valkey' reads 'repairhub/valkey'
            field: Key inside the secret, e.g. 'url'

        Raises:
            PermissionError: If the path is missing or not readable
            KeyError: If the secret has no such field
        """
        full_path = f"{_SECRET_PREFIX}/{path}"

        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath:
            logger.error(f"No secret at {full_path}")
            raise PermissionError(f"Secret path '{full_path}' not found in Vault")
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Not allowed to read {full_path}: {e}")
            raise PermissionError(f"Access denied to secret '{full_path}': {e}")

        data = response["data"]["data"]
        if field not in data:
            raise KeyError(
                f"Field '{field}' not found in secret '{full_path}'. Available: {', '.join(data)}"
            )
        return data[field]


def _cached_secret(path: str, field: str) -> str:
    global _vault_client_instance

    cache_key = f"{_SECRET_PREFIX}/{path}/{field}"
    if cache_key not in _secret_cache:
        if _vault_client_instance is None:
            _vault_client_instance = VaultClient()
        _secret_cache[cache_key] = _vault_client_instance.get_secret(path, field)
    return _secret_cache[cache_key]


def get_valkey_url() -> str:
    """Valkey connection URL."""
    return _cached_secret("valkey", "url")


def get_gateway_config() -> Dict[str, str]:
    """
    Email/SMS gateway credentials.

    Returns:
        Dict with gateway_url, api_key and hmac_secret, ready for GatewayClient
    """
    return {
        field: _cached_secret("email", field)
        for field in ("gateway_url", "api_key", "hmac_secret")
    }
