# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    VaultError,
    get_database_url,
    get_jwt_secrets,
)
from clients.postgres_client import PostgresClient
