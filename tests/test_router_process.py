import sys
import time

import pytest

from src.trader.router_process import RouterProcess

SLEEPER = [sys.executable, "-c", "import time; time.sleep(30)"]
STUBBORN = [
    sys.executable,
    "-c",
    "import signal, time; signal.signal(signal.SIGTERM, signal.SIG_IGN); time.sleep(30)",
]


def test_router_runs_for_the_length_of_the_block():
    router = RouterProcess(SLEEPER, stop_timeout=2.0)
    with router:
        proc = router.proc
        assert router.is_running()
    assert not router.is_running()
    assert proc.poll() is not None


def test_router_is_stopped_when_the_run_fails():
    router = RouterProcess(SLEEPER, stop_timeout=2.0)
    with pytest.raises(RuntimeError):
        with router:
            proc = router.proc
            raise RuntimeError("run aborted")
    assert proc.poll() is not None


@pytest.mark.skipif(sys.platform == "win32", reason="SIGTERM cannot be ignored on Windows")
def test_router_that_ignores_terminate_is_killed():
    router = RouterProcess(STUBBORN, stop_timeout=0.3)
    router.start()
    proc = router.proc
    # Give the child time to install its SIGTERM handler.
    time.sleep(0.5)
    router.stop()
    assert proc.poll() is not None


def test_stop_without_start_is_a_noop():
    RouterProcess(SLEEPER).stop()
