# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    VaultError,
    get_valkey_url,
    get_gateway_config,
)
from clients.valkey_client import ValkeyClient
from clients.gateway_client import GatewayClient, GatewayError
