from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from contextlib import ExitStack
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from src.data.signals import SignalClient
from src.db.mongo.repositories.accounts import AccountSource
from src.db.mongo.repositories.algorithms import AlgorithmDirectory
from src.domain.errors import AccountError, DecodeError, ReadinessTimeoutError, RunInProgressError
from src.domain.models import Account, AccountOutcome, NoActionSkip, RunReport
from src.providers.registry import ProviderRegistry
from src.trader.readiness import ReadinessGate
from src.trader.router_process import DEFAULT_ROUTER_COMMAND, RouterProcess
from src.trading.builder import AMOUNT_MULTIPLIER, build_transaction
from src.trading.dispatch import Dispatcher, build_dispatcher

logger = logging.getLogger(__name__)


class Orchestrator:
    """
    One transactions run: directory -> (router readiness) -> account stream -> per-account dispatch.

    Accounts are independent units of work processed on a bounded worker pool. A failure in one
    account is logged and recorded in the run report; only run-level failures (store, readiness)
    propagate out of `run()`. Runs are serialised by a non-blocking run lock.
    """

    def __init__(
        self,
        config: dict[str, Any],
        *,
        accounts: AccountSource,
        algorithms: AlgorithmDirectory,
        signals: SignalClient,
        registry: ProviderRegistry,
        dispatcher: Dispatcher,
        router_factory: Callable[[], RouterProcess] | None = None,
        gate_factory: Callable[[str], ReadinessGate] | None = None,
    ) -> None:
        self.config = config
        self.accounts = accounts
        self.algorithms = algorithms
        self.signals = signals
        self.registry = registry
        self.dispatcher = dispatcher

        router_cfg = config.get("router", {}) or {}
        run_cfg = config.get("run", {}) or {}
        self.router_uri = str(router_cfg.get("uri", "")).rstrip("/")
        self.ping_path = str(router_cfg.get("ping_path", "/ping"))
        self.spawn_router = bool(router_cfg.get("spawn", False))
        self.strategy = str((config.get("dispatch", {}) or {}).get("strategy", "router"))
        self.max_workers = max(1, int(run_cfg.get("max_workers", 4)))
        self.multiplier = float(run_cfg.get("amount_multiplier", AMOUNT_MULTIPLIER))

        self.router_factory = router_factory or (
            lambda: RouterProcess(
                router_cfg.get("command") or DEFAULT_ROUTER_COMMAND,
                cwd=router_cfg.get("cwd"),
                stop_timeout=float(router_cfg.get("stop_timeout_seconds", 3.0)),
            )
        )
        self.gate_factory = gate_factory or (
            lambda url: ReadinessGate(
                url,
                overall_timeout=float(router_cfg.get("ready_timeout_seconds", 30.0)),
                retry_interval=float(router_cfg.get("retry_interval_seconds", 0.5)),
            )
        )

        self._run_lock = threading.Lock()
        self.last_report: RunReport | None = None

    def is_running(self) -> bool:
        return self._run_lock.locked()

    def try_acquire(self) -> bool:
        """Take the run lock without blocking; pair a True result with `run_acquired()`."""
        return self._run_lock.acquire(blocking=False)

    def run(self) -> RunReport:
        if not self.try_acquire():
            raise RunInProgressError("A transactions run is already in progress")
        return self.run_acquired()

    def run_acquired(self) -> RunReport:
        """Run while holding the lock taken by `try_acquire()`; the lock is released on return."""
        try:
            report = self._run()
            self.last_report = report
            return report
        finally:
            self.registry.clear()
            self._run_lock.release()

    # -------------------
    # Internal
    # -------------------

    def _run(self) -> RunReport:
        report = RunReport()
        start = time.monotonic()
        logger.info("Running transactions (strategy=%s, workers=%d)", self.strategy, self.max_workers)

        directory = self.algorithms.load()

        with ExitStack() as stack:
            if self.spawn_router:
                stack.enter_context(self.router_factory())
            if self.spawn_router or self.strategy == "router":
                ping_url = f"{self.router_uri}{self.ping_path}"
                if not self.gate_factory(ping_url).wait_ready():
                    raise ReadinessTimeoutError(f"Transaction router not reachable at {ping_url}")

            self._stream(directory, report)

        report.finished_at = datetime.now(tz=timezone.utc)
        logger.info(
            "Transactions run finished in %.2fs: %d accounts, %d dispatched, %d skipped, %d failed",
            time.monotonic() - start,
            len(report.outcomes),
            report.dispatched,
            report.skipped,
            report.failed,
        )
        return report

    def _stream(self, directory: Mapping[str, str], report: RunReport) -> None:
        # Bound queued work so a large account stream is not materialised up front.
        slots = threading.BoundedSemaphore(self.max_workers * 2)
        outcomes_lock = threading.Lock()
        futures: list[Future] = []

        def _record(outcome: AccountOutcome) -> None:
            with outcomes_lock:
                report.outcomes.append(outcome)

        def _work(account: Account) -> None:
            try:
                _record(self.process_account(account, directory))
            finally:
                slots.release()

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="account") as pool:
            try:
                for item in self.accounts.stream():
                    if isinstance(item, DecodeError):
                        _record(AccountOutcome(item.account_id, "failed", stage=item.stage, detail=str(item)))
                        continue
                    slots.acquire()
                    futures.append(pool.submit(_work, item))
            finally:
                # In-flight accounts still complete when the stream ends with a store error.
                wait(futures)

    def process_account(self, account: Account, directory: Mapping[str, str]) -> AccountOutcome:
        """signals -> transaction -> provider -> dispatch, with every failure contained to this account."""
        try:
            signals = self.signals.fetch(account.pair, account.interval)
            transaction = build_transaction(account, directory, signals, multiplier=self.multiplier)
            if isinstance(transaction, NoActionSkip):
                logger.info("Account %s skipped: no_action signal from %s", account.id, transaction.algorithm)
                return AccountOutcome(account.id, "skipped", stage="build", detail="no_action")

            provider = None
            if self.dispatcher.needs_provider:
                provider = self.registry.build(account.provider, account.credential, account_id=account.id)
            result = self.dispatcher.dispatch(account, transaction, provider)
        except AccountError as e:
            if e.account_id is None:
                e.account_id = account.id
            logger.warning(f"Account {account.id} failed at {e.stage}: {type(e).__name__}: {e}")
            return AccountOutcome(account.id, "failed", stage=e.stage, detail=str(e))
        except Exception as e:
            logger.error(f"Account {account.id} failed unexpectedly: {type(e).__name__}: {e}", exc_info=True)
            return AccountOutcome(account.id, "failed", stage="unexpected", detail=f"{type(e).__name__}: {e}")

        logger.info(
            "Transaction dispatched for account %s: %s %s %s (id=%s)",
            account.id,
            transaction.action.to_token(),
            transaction.amount,
            transaction.pair,
            result.id,
        )
        return AccountOutcome(account.id, "dispatched", result=result)


def build_orchestrator(config: dict[str, Any], database: Any | None = None) -> Orchestrator:
    """Wire an orchestrator from config; `database` defaults to the configured MongoDB database."""
    db_cfg = config.get("database", {}) or {}
    if database is None:
        from src.db.mongo.client import get_database

        database = get_database(db_cfg)

    signals_cfg = config.get("signals", {}) or {}
    run_cfg = config.get("run", {}) or {}
    registry = ProviderRegistry(config.get("providers", {}) or {}, cache_instances=bool(run_cfg.get("cache_providers", False)))

    return Orchestrator(
        config,
        accounts=AccountSource(database[str(db_cfg.get("accounts_collection", "bots"))]),
        algorithms=AlgorithmDirectory(database[str(db_cfg.get("algorithms_collection", "algorithms"))]),
        signals=SignalClient(
            str(signals_cfg.get("base_url", "http://127.0.0.1:5000")),
            timeout_seconds=float(signals_cfg.get("timeout_seconds", 10.0)),
        ),
        registry=registry,
        dispatcher=build_dispatcher(config, registry),
    )


def main() -> None:
    """Run a single transactions pass from the command line."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    from src.utils.config_loader import load_config

    config = load_config()
    orchestrator = build_orchestrator(config)
    report = orchestrator.run()
    logger.info("Run report: %s", report.to_dict())
