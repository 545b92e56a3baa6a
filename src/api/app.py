from __future__ import annotations

import logging
import os
import threading
import traceback
from typing import Any, TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.domain.errors import TransactionsError
from src.utils.config_loader import load_config

if TYPE_CHECKING:
    from src.trader.runner import Orchestrator

logger = logging.getLogger(__name__)

_orchestrator: Orchestrator | None = None
_database: Any | None = None
_last_error: str | None = None


app = FastAPI(
    title="Bot Transactions",
    version="0.1.0",
)


@app.on_event("startup")
async def startup_event():
    global _orchestrator, _database
    if str(os.environ.get("TRANSACTIONS_DISABLE_STARTUP", "")).strip() in {"1", "true", "TRUE", "yes", "YES"}:
        logger.info("Orchestrator startup skipped (TRANSACTIONS_DISABLE_STARTUP set).")
        return

    # Import lazily so unit tests can run without a store configured.
    from src.db.mongo.client import get_database
    from src.trader.runner import build_orchestrator

    cfg = load_config()
    _database = get_database(cfg.get("database", {}) or {})
    _orchestrator = build_orchestrator(cfg, _database)
    logger.info("Orchestrator ready (dispatch strategy=%s)", _orchestrator.strategy)


@app.on_event("shutdown")
async def shutdown_event():
    global _orchestrator, _database
    if _database is not None:
        from src.db.mongo.client import close_client

        close_client()
    _orchestrator = None
    _database = None


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {type(exc).__name__}: {exc}")
    logger.debug(traceback.format_exc())
    return JSONResponse(
        status_code=500,
        content={
            "detail": f"Internal server error: {type(exc).__name__}",
            "message": str(exc)[:200],
        },
    )


def _run_in_background(orchestrator: Orchestrator) -> None:
    """Thread target; the caller has already taken the run lock with `try_acquire()`."""
    global _last_error
    try:
        orchestrator.run_acquired()
        _last_error = None
    except TransactionsError as e:
        _last_error = f"{type(e).__name__}: {e}"
        logger.error(f"Transactions run aborted: {_last_error}")
    except Exception as e:
        _last_error = f"{type(e).__name__}: {e}"
        logger.error(f"Transactions run crashed: {_last_error}", exc_info=True)


@app.api_route("/price_update", methods=["GET", "POST"])
async def price_update() -> JSONResponse:
    """
    Fire-and-forget trigger: start a run out of band and acknowledge immediately.
    Only one run may be active at a time.
    """
    orchestrator = _orchestrator
    if orchestrator is None:
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    # Take the lock here so two back-to-back triggers cannot both be accepted.
    if not orchestrator.try_acquire():
        return JSONResponse(status_code=409, content={"status": "busy"})

    logger.info("Price update received; running transactions")
    threading.Thread(target=_run_in_background, args=(orchestrator,), name="transactions-run", daemon=True).start()
    return JSONResponse(status_code=202, content={"status": "accepted"})


@app.get("/api/health")
async def health() -> dict[str, Any]:
    store_ok: bool | None = None
    if _database is not None:
        from src.db.mongo.client import ping

        store_ok = ping(_database)

    orchestrator = _orchestrator
    last = orchestrator.last_report if orchestrator is not None else None
    return {
        "status": "ok" if orchestrator is not None and store_ok is not False else "degraded",
        "store_ok": store_ok,
        "run_in_progress": bool(orchestrator and orchestrator.is_running()),
        "last_run": last.to_dict() if last is not None else None,
        "last_error": _last_error,
    }
