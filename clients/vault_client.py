"""
HashiCorp Vault client for RepairDesk secret management.

Uses AppRole authentication. Fails fast on missing configuration: every
failure surfaces as VaultError.
All paths scoped to 'repairdesk/' prefix - no escape to other secrets.
"""

import os
import logging
from typing import Dict

import hvac
import requests
from hvac.exceptions import InvalidPath, Unauthorized, Forbidden, VaultError as HvacError

logger = logging.getLogger(__name__)

# Project scope - all secrets under this path
_SECRET_PREFIX = "repairdesk"

# Singleton instance and cache
_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, str] = {}


def _ensure_vault_client() -> "VaultClient":
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


class VaultError(Exception):
    """Vault operation failed. Fatal - the service cannot start without secrets."""


_REQUIRED_ENV = ("VAULT_ADDR", "VAULT_ROLE_ID", "VAULT_SECRET_ID")


class VaultClient:
    """Vault client with AppRole auth, env-based config, and fail-fast behavior."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
    ):
        """
        Initialize from environment variables.

        Raises:
            VaultError: If configuration is missing or AppRole login fails
        """
        missing = [name for name in _REQUIRED_ENV if not os.getenv(name)]
        if vault_addr and "VAULT_ADDR" in missing:
            missing.remove("VAULT_ADDR")
        if missing:
            raise VaultError(f"Missing environment variables: {', '.join(missing)}")

        self.vault_addr = vault_addr or os.environ["VAULT_ADDR"]
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")

        client_kwargs = {"url": self.vault_addr}
        if self.vault_namespace:
            client_kwargs["namespace"] = self.vault_namespace
        self.client = hvac.Client(**client_kwargs)

        self._login(os.environ["VAULT_ROLE_ID"], os.environ["VAULT_SECRET_ID"])
        logger.info(f"Vault client initialized: {self.vault_addr}")

    def _login(self, role_id: str, secret_id: str) -> None:
        try:
            auth_response = self.client.auth.approle.login(role_id=role_id, secret_id=secret_id)
        except (HvacError, requests.exceptions.RequestException) as e:
            logger.error(f"AppRole authentication failed: {e}")
            raise VaultError(f"AppRole authentication failed: {e}") from e

        self.client.token = auth_response["auth"]["client_token"]
        if not self.client.is_authenticated():
            raise VaultError("Vault authentication failed")

    def read_secret(self, path: str) -> Dict[str, str]:
        """
        Read every field of a KV v2 secret under the repairdesk/ prefix.

        Raises:
            VaultError: Path missing or access denied
        """
        full_path = f"{_SECRET_PREFIX}/{path}"
        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath as e:
            logger.error(f"Secret path not found: {full_path}")
            raise VaultError(f"Secret path '{full_path}' not found in Vault") from e
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise VaultError(f"Access denied to secret '{full_path}': {e}") from e

        return response["data"]["data"]

    def get_secret(self, path: str, field: str) -> str:
        """
        Retrieve a single field, e.g. ``get_secret("database", "url")``.

        Raises:
            VaultError: Path missing or access denied
            KeyError: Field not found in secret
        """
        secret_data = self.read_secret(path)
        if field not in secret_data:
            raise KeyError(
                f"Field '{field}' not found in secret '{_SECRET_PREFIX}/{path}'. "
                f"Available: {', '.join(secret_data)}"
            )
        return secret_data[field]


# Convenience functions


def _cached_fields(path: str, fields: list[str]) -> Dict[str, str]:
    """Read several fields of one secret, caching each."""
    client = _ensure_vault_client()
    result = {}

    for field in fields:
        cache_key = f"{_SECRET_PREFIX}/{path}/{field}"
        if cache_key not in _secret_cache:
            _secret_cache[cache_key] = client.get_secret(path, field)
        result[field] = _secret_cache[cache_key]

    return result


def get_database_url() -> str:
    """Get PostgreSQL connection URL from Vault."""
    return _cached_fields("database", ["url"])["url"]


def get_message_gateway_config() -> Dict[str, str]:
    """Get customer message gateway configuration from Vault.

    Returns:
        Dict with keys: gateway_url, api_key, hmac_secret
    """
    return _cached_fields("messaging", ["gateway_url", "api_key", "hmac_secret"])
