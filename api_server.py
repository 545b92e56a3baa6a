import os
import sys
import uvicorn
import logging
import fcntl
from pathlib import Path
from dotenv import load_dotenv

# Configure logging to write to both stderr and a file immediately.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr),
        logging.FileHandler("api_server.log", mode="a")
    ]
)
logger = logging.getLogger("api_server")


def _load_local_env() -> None:
    """
    Load local environment variables from config/secrets.env, falling back to .env.

    DB_URI and TRANSACTION_ROUTER_URI usually live there for local runs.
    """
    root = Path(__file__).resolve().parent
    for env_path in (root / "config" / "secrets.env", root / ".env"):
        if env_path.exists():
            load_dotenv(env_path)
            logger.info("Loaded environment variables from %s", env_path)
            return


def main() -> None:
    _load_local_env()

    # Missing DB_URI / router URI is fatal before we ever bind the port.
    from src.domain.errors import ConfigError
    from src.utils.config_loader import load_config

    try:
        cfg = load_config()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    # Enforce single-instance operation: two servers would run against the same accounts.
    lock_path = Path(".transactions_server.lock")
    try:
        lock_f = lock_path.open("w")
        fcntl.flock(lock_f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        lock_f.write(str(os.getpid()))
        lock_f.flush()
        # Keep lock file handle alive for process lifetime.
    except OSError:
        logger.error("Another transactions server appears to be running (lockfile busy). Exiting.")
        sys.exit(1)

    server = cfg.get("server", {}) or {}
    host = str(server.get("host", "localhost"))
    port = int(server.get("port", 8080))

    try:
        logger.info(f"Server listening on http://{host}:{port}")
        uvicorn.run(
            "src.api.app:app",
            host=host,
            port=port,
            reload=False,
            log_level="info",
            loop="auto",
            workers=1  # One process so the run lock covers every trigger.
        )
    except Exception as e:
        logger.error(f"Fatal error in transactions server: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
