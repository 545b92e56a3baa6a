from __future__ import annotations

import logging
import threading
import time
from enum import Enum

import requests

logger = logging.getLogger(__name__)


class GateState(Enum):
    IDLE = "idle"
    POLLING = "polling"
    READY = "ready"
    TIMED_OUT = "timed_out"


class ReadinessGate:
    """
    Poll a URL until it answers 2xx or an overall deadline passes.

    A daemon prober thread issues the requests; the caller waits on a ready event with the deadline.
    When `wait_ready` returns, for either outcome, the prober is signalled to stop and joined,
    so no probing outlives the call.
    """

    def __init__(
        self,
        url: str,
        *,
        overall_timeout: float = 30.0,
        retry_interval: float = 0.5,
        probe_timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.overall_timeout = float(overall_timeout)
        self.retry_interval = float(retry_interval)
        self.probe_timeout = float(probe_timeout) if probe_timeout is not None else max(self.retry_interval, 1.0)
        self.session = session or requests.Session()

        self.state = GateState.IDLE
        self.attempts = 0
        self._ready_evt = threading.Event()
        self._stop_evt = threading.Event()
        self._thread: threading.Thread | None = None

    def wait_ready(self) -> bool:
        if self.state is not GateState.IDLE:
            raise RuntimeError(f"ReadinessGate already used (state={self.state.value})")

        deadline = time.monotonic() + self.overall_timeout
        self.state = GateState.POLLING
        self._thread = threading.Thread(target=self._probe_loop, args=(deadline,), name="readiness-probe", daemon=True)
        self._thread.start()

        ready = self._ready_evt.wait(timeout=self.overall_timeout)
        self._stop_evt.set()
        # Probes only read the status line and every socket read is capped at the time left,
        # so the prober exits right after the deadline.
        self._thread.join(timeout=self.probe_timeout)
        if self._thread.is_alive():
            logger.warning("Readiness prober for %s still running after the gate returned", self.url)

        ready = ready and self._ready_evt.is_set()
        self.state = GateState.READY if ready else GateState.TIMED_OUT
        if ready:
            logger.info("%s ready after %d attempt(s)", self.url, self.attempts)
        else:
            logger.error("%s not ready after %.1fs (%d attempts)", self.url, self.overall_timeout, self.attempts)
        return ready

    def _probe_loop(self, deadline: float) -> None:
        while not self._stop_evt.is_set():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            self.attempts += 1
            try:
                # stream=True: the body is never read, so a slow body cannot hold the probe.
                with self.session.get(self.url, timeout=min(self.probe_timeout, remaining), stream=True) as resp:
                    status = resp.status_code
                # Only a success observed before the deadline counts.
                if 200 <= status < 300 and time.monotonic() < deadline:
                    self._ready_evt.set()
                    return
                logger.debug("Readiness probe %s answered HTTP %s", self.url, status)
            except requests.RequestException as e:
                logger.debug(f"Readiness probe {self.url} failed: {e}")
            self._stop_evt.wait(self.retry_interval)


def wait_for_connection(url: str, overall_timeout: float, retry_interval: float) -> bool:
    return ReadinessGate(url, overall_timeout=overall_timeout, retry_interval=retry_interval).wait_ready()
