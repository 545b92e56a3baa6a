from __future__ import annotations

import logging
import os
import threading
from copy import deepcopy
from pathlib import Path
from typing import Any

import yaml

from src.domain.errors import ConfigError

logger = logging.getLogger(__name__)

_cache_lock = threading.Lock()
_cached: dict[str, Any] | None = None
_cached_path: str | None = None

DISPATCH_STRATEGIES = ("router", "direct")


def _project_root() -> Path:
    # src/utils/config_loader.py -> src/utils -> src -> project root
    return Path(__file__).resolve().parents[2]


def default_config_path() -> Path:
    return _project_root() / "config" / "config.yaml"


def _apply_env_overrides(cfg: dict[str, Any]) -> None:
    """
    Override selected YAML settings with environment variables.

    Connection strings come from the environment (or config/secrets.env) rather than the YAML file.
    """
    database = cfg.setdefault("database", {})
    if os.getenv("DB_URI"):
        database["uri"] = os.environ["DB_URI"]

    router = cfg.setdefault("router", {})
    router_uri = os.getenv("TRANSACTION_ROUTER_URI") or os.getenv("TRANSACTOR_URI")
    if router_uri:
        router["uri"] = router_uri

    signals = cfg.setdefault("signals", {})
    if os.getenv("SIGNAL_SERVICE_URI"):
        signals["base_url"] = os.environ["SIGNAL_SERVICE_URI"]

    dispatch = cfg.setdefault("dispatch", {})
    if os.getenv("TRANSACTIONS_DISPATCH_STRATEGY"):
        dispatch["strategy"] = os.environ["TRANSACTIONS_DISPATCH_STRATEGY"].strip().lower()

    run = cfg.setdefault("run", {})
    if os.getenv("TRANSACTIONS_MAX_WORKERS"):
        try:
            run["max_workers"] = int(os.environ["TRANSACTIONS_MAX_WORKERS"])
        except ValueError as e:
            raise ConfigError(f"TRANSACTIONS_MAX_WORKERS must be an integer: {e}") from e


def validate_config(cfg: dict[str, Any]) -> None:
    """Fail fast if anything a run cannot do without is missing."""
    if not str((cfg.get("database") or {}).get("uri") or "").strip():
        raise ConfigError("DB_URI is not set (database.uri)")
    if not str((cfg.get("router") or {}).get("uri") or "").strip():
        raise ConfigError("TRANSACTION_ROUTER_URI / TRANSACTOR_URI is not set (router.uri)")

    strategy = (cfg.get("dispatch") or {}).get("strategy", "router")
    if strategy not in DISPATCH_STRATEGIES:
        raise ConfigError(f"Unsupported dispatch.strategy: {strategy!r} (expected one of {', '.join(DISPATCH_STRATEGIES)})")

    workers = (cfg.get("run") or {}).get("max_workers", 1)
    if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
        raise ConfigError("run.max_workers must be an integer >= 1")


def load_config(config_path: str | Path | None = None, *, force_reload: bool = False) -> dict[str, Any]:
    """
    Load the YAML config once and reuse it across the process.

    - Reads `config/config.yaml` by default.
    - Applies environment overrides (DB_URI, TRANSACTION_ROUTER_URI, ...).
    - Returns a deep copy so callers can safely mutate local copies.
    """
    global _cached, _cached_path

    path = Path(config_path) if config_path else default_config_path()
    path_str = str(path.resolve())

    with _cache_lock:
        if not force_reload and _cached is not None and _cached_path == path_str:
            return deepcopy(_cached)

        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        with path.open("r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}

        if not isinstance(cfg, dict):
            raise ConfigError(f"Config must be a YAML mapping (dict); got {type(cfg).__name__}")

        _apply_env_overrides(cfg)
        validate_config(cfg)

        _cached = cfg
        _cached_path = path_str
        logger.info("Loaded config from %s", path_str)
        return deepcopy(cfg)
