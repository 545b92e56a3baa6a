from pathlib import Path

import pytest

from src.domain.errors import ConfigError
from src.utils.config_loader import default_config_path, load_config

ENV_VARS = (
    "DB_URI",
    "TRANSACTION_ROUTER_URI",
    "TRANSACTOR_URI",
    "SIGNAL_SERVICE_URI",
    "TRANSACTIONS_DISPATCH_STRATEGY",
    "TRANSACTIONS_MAX_WORKERS",
)

BASE_YAML = """
database:
  name: database
router:
  ping_path: /ping
dispatch:
  strategy: router
run:
  max_workers: 2
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def _write(tmp_path: Path, text: str = BASE_YAML) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_env_supplies_connection_strings(tmp_path, monkeypatch):
    monkeypatch.setenv("DB_URI", "mongodb://db.local:27017")
    monkeypatch.setenv("TRANSACTION_ROUTER_URI", "http://router.local:3000")
    monkeypatch.setenv("SIGNAL_SERVICE_URI", "http://signals.local")
    monkeypatch.setenv("TRANSACTIONS_MAX_WORKERS", "8")

    cfg = load_config(_write(tmp_path), force_reload=True)

    assert cfg["database"]["uri"] == "mongodb://db.local:27017"
    assert cfg["router"]["uri"] == "http://router.local:3000"
    assert cfg["signals"]["base_url"] == "http://signals.local"
    assert cfg["run"]["max_workers"] == 8


def test_transactor_uri_is_accepted_as_router_fallback(tmp_path, monkeypatch):
    monkeypatch.setenv("DB_URI", "mongodb://db.local")
    monkeypatch.setenv("TRANSACTOR_URI", "http://legacy-router:3000")
    cfg = load_config(_write(tmp_path), force_reload=True)
    assert cfg["router"]["uri"] == "http://legacy-router:3000"


def test_missing_db_uri_is_fatal(tmp_path, monkeypatch):
    monkeypatch.setenv("TRANSACTION_ROUTER_URI", "http://router.local")
    with pytest.raises(ConfigError, match=r"DB_URI"):
        load_config(_write(tmp_path), force_reload=True)


def test_missing_router_uri_is_fatal(tmp_path, monkeypatch):
    monkeypatch.setenv("DB_URI", "mongodb://db.local")
    with pytest.raises(ConfigError, match=r"router.uri"):
        load_config(_write(tmp_path), force_reload=True)


@pytest.mark.parametrize(
    "env, match",
    [
        ({"TRANSACTIONS_DISPATCH_STRATEGY": "carrier-pigeon"}, r"dispatch.strategy"),
        ({"TRANSACTIONS_MAX_WORKERS": "many"}, r"TRANSACTIONS_MAX_WORKERS"),
        ({"TRANSACTIONS_MAX_WORKERS": "0"}, r"max_workers"),
    ],
)
def test_invalid_run_settings_are_rejected(tmp_path, monkeypatch, env, match):
    monkeypatch.setenv("DB_URI", "mongodb://db.local")
    monkeypatch.setenv("TRANSACTION_ROUTER_URI", "http://router.local")
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    with pytest.raises(ConfigError, match=match):
        load_config(_write(tmp_path), force_reload=True)


def test_config_is_cached_and_returned_as_copies(tmp_path, monkeypatch):
    monkeypatch.setenv("DB_URI", "mongodb://db.local")
    monkeypatch.setenv("TRANSACTION_ROUTER_URI", "http://router.local")
    path = _write(tmp_path)

    first = load_config(path, force_reload=True)
    first["run"]["max_workers"] = 99
    path.write_text(BASE_YAML.replace("max_workers: 2", "max_workers: 3"), encoding="utf-8")

    assert load_config(path)["run"]["max_workers"] == 2
    assert load_config(path, force_reload=True)["run"]["max_workers"] == 3


def test_missing_file_and_non_mapping_are_config_errors(tmp_path):
    with pytest.raises(ConfigError, match=r"not found"):
        load_config(tmp_path / "nope.yaml", force_reload=True)
    with pytest.raises(ConfigError, match=r"mapping"):
        load_config(_write(tmp_path, "- just\n- a list\n"), force_reload=True)


def test_shipped_config_loads(monkeypatch):
    monkeypatch.setenv("DB_URI", "mongodb://db.local")
    monkeypatch.setenv("TRANSACTION_ROUTER_URI", "http://router.local")
    cfg = load_config(default_config_path(), force_reload=True)
    assert cfg["dispatch"]["strategy"] in ("router", "direct")
    assert cfg["providers"]["coinbase"]["trading_enabled"] is False
