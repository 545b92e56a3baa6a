"""
Transactions run orchestration.

The entrypoints (`main.py`, `api_server.py`) stay thin; the run loop, the router child process
and the readiness gate live under `src/trader/`.
"""
