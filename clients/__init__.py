# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    VaultError,
    get_database_url,
    get_message_gateway_config,
)
from clients.postgres_client import PostgresClient
from clients.message_gateway_client import MessageGatewayClient, MessageGatewayError
