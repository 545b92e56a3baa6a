from __future__ import annotations

import logging
import os
import threading
from typing import Any

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from src.domain.errors import StoreError

logger = logging.getLogger(__name__)

# Fail fast on store connection issues so a run never hangs on server selection.
_DEFAULT_SERVER_SELECTION_TIMEOUT_MS = int(os.environ.get("TRANSACTIONS_MONGO_TIMEOUT_MS", "3000"))

_client_lock = threading.Lock()
_client: MongoClient | None = None
_client_uri: str | None = None


def redact_uri(uri: str) -> str:
    """Drop credentials from a connection string before it reaches a log line."""
    try:
        from urllib.parse import urlparse

        u = urlparse(uri)
        host = u.hostname or "localhost"
        port = f":{u.port}" if u.port else ""
        return f"{u.scheme}://{host}{port}{u.path or ''}"
    except Exception:
        return "mongodb://<redacted>"


def get_client(uri: str) -> MongoClient:
    """
    Lazily create one process-wide MongoClient (it pools connections internally).
    A different URI replaces the cached client.
    """
    global _client, _client_uri
    if not uri:
        raise StoreError("Account store URI is empty")

    with _client_lock:
        if _client is not None and _client_uri == uri:
            return _client
        if _client is not None:
            _client.close()
        _client = MongoClient(uri, serverSelectionTimeoutMS=_DEFAULT_SERVER_SELECTION_TIMEOUT_MS)
        _client_uri = uri
        logger.info("Initialised MongoDB client for %s", redact_uri(uri))
        return _client


def get_database(db_cfg: dict[str, Any]) -> Database:
    client = get_client(str(db_cfg.get("uri") or ""))
    return client[str(db_cfg.get("name", "database"))]


def ping(database: Database) -> bool:
    try:
        database.client.admin.command("ping")
        return True
    except PyMongoError as e:
        logger.warning(f"Account store ping failed: {e}")
        return False


def close_client() -> None:
    global _client, _client_uri
    with _client_lock:
        if _client is not None:
            _client.close()
        _client = None
        _client_uri = None
