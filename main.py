"""Bot transactions one-shot entrypoint.

Runs a single transactions pass and exits. The HTTP trigger lives in `api_server.py`;
the orchestration logic lives in `src/trader/runner.py`.
"""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv


def _load_local_secrets() -> None:
    """Load local secrets for development runs (ignored by git)."""
    root = Path(__file__).resolve().parent
    for env_path in (root / "config" / "secrets.env", root / ".env"):
        if env_path.exists():
            load_dotenv(env_path)
            return


def main() -> None:
    _load_local_secrets()

    from src.trader.runner import main as runner_main

    runner_main()


if __name__ == "__main__":
    main()
