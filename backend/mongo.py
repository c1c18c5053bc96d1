import logging
import os
from typing import Any

from pymongo import MongoClient
from pymongo.errors import ServerSelectionTimeoutError
from pymongo.server_api import ServerApi

logger = logging.getLogger(__name__)

_client: MongoClient | None = None


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def connect(timeout_ms: int = 5000) -> Any:
    """Return the configured database, creating the shared client on first call."""
    global _client
    uri = os.getenv("MONGO_URI")
    db_name = os.getenv("MONGO_DB")

    if not uri:
        raise RuntimeError("MONGO_URI environment variable is not set")
    if not db_name:
        raise RuntimeError("MONGO_DB environment variable is not set")

    if _client is None:
        options: dict[str, Any] = {
            "serverSelectionTimeoutMS": timeout_ms,
            "server_api": ServerApi('1'),
        }
        # Atlas needs TLS; a local mongod usually does not
        if _env_flag("MONGO_TLS", True):
            options.update(tls=True, tlsAllowInvalidCertificates=True)
        _client = MongoClient(uri, **options)
        try:
            _client.admin.command("ping")
        except ServerSelectionTimeoutError as exc:
            _client = None
            raise RuntimeError("Unable to connect to MongoDB") from exc
        logger.info("Connected to MongoDB database %s", db_name)

    return _client[db_name]
