"""Settings, client cache, and connection-string resolution."""

from __future__ import annotations

import logging
import threading

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConfigurationError

from mongorepo.infrastructure.retry import DEFAULT_ATTEMPTS, ErrorKind

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Connection and retry configuration.

    connection_strings maps a connection name (see EntityRegistry) to a
    MongoDB URL; the URL must name a database.  Set it from the environment
    as JSON, e.g.
        MONGOREPO_CONNECTION_STRINGS='{"person": "mongodb://localhost/crm"}'
    """

    model_config = SettingsConfigDict(env_prefix="MONGOREPO_", env_file=".env", extra="ignore")

    connection_strings: dict[str, str] = Field(default_factory=dict)
    default_connection_string: str | None = None
    retry_attempts: int = Field(default=DEFAULT_ATTEMPTS, ge=1)
    transient_errors: frozenset[ErrorKind] = frozenset(ErrorKind)

    def connection_string(self, name: str) -> str:
        """Return the URL for connection name, falling back to the default."""
        for key, url in self.connection_strings.items():
            if key.lower() == name.lower():
                return url
        if self.default_connection_string:
            return self.default_connection_string
        raise ConfigurationError(f"No connection string configured for {name!r}")


settings = Settings()

_clients: dict[str, MongoClient] = {}
_clients_lock = threading.Lock()


def get_client(url: str) -> MongoClient:
    """Return the shared MongoClient for url, creating it on first use.

    MongoClient validates the URL eagerly, so a malformed connection string
    raises InvalidURI / ConfigurationError here.
    """
    with _clients_lock:
        client = _clients.get(url)
        if client is None:
            client = MongoClient(url)
            _clients[url] = client
            logger.info("Created MongoClient (%d cached)", len(_clients))
        return client


def get_database_from_url(url: str) -> Database:
    """Return the default database named in url."""
    # Acknowledged writes are the driver default.
    return get_client(url).get_default_database()


def close_clients() -> None:
    """Close and forget every cached client."""
    with _clients_lock:
        clients = list(_clients.values())
        _clients.clear()
    for client in clients:
        client.close()
