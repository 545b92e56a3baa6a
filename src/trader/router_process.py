from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)

DEFAULT_ROUTER_COMMAND = ("node", "transaction-router/")


class RouterProcess:
    """
    Owns the transaction router child process for the length of one run.

    Used as a context manager: the child is terminated (then killed if it lingers) on exit,
    whatever the outcome of the run.
    """

    def __init__(self, command: Sequence[str] = DEFAULT_ROUTER_COMMAND, *, cwd: str | Path | None = None, stop_timeout: float = 3.0):
        self.command = list(command)
        self.cwd = str(cwd) if cwd else None
        self.stop_timeout = float(stop_timeout)
        self.proc: subprocess.Popen | None = None

    def start(self) -> None:
        if self.proc is not None and self.proc.poll() is None:
            return
        logger.info("Starting transaction router: %s", " ".join(self.command))
        self.proc = subprocess.Popen(self.command, cwd=self.cwd)

    def is_running(self) -> bool:
        return self.proc is not None and self.proc.poll() is None

    def stop(self) -> None:
        proc = self.proc
        if proc is None:
            return
        self.proc = None
        if proc.poll() is not None:
            return
        try:
            proc.terminate()
            proc.wait(timeout=self.stop_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("Transaction router did not exit within %.1fs; killing", self.stop_timeout)
            proc.kill()
            proc.wait(timeout=self.stop_timeout)
        except OSError as e:
            logger.error(f"Error stopping transaction router: {e}")
        else:
            logger.info("Transaction router stopped (exit code %s)", proc.returncode)

    def __enter__(self) -> RouterProcess:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
