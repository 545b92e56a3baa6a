from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, ClassVar, Protocol
from uuid import uuid4

import requests

from src.domain.errors import AccountError, DispatchError, SwapError
from src.domain.models import Account, TransactionInfo, TransactionResult
from src.ports.provider import TradeProvider
from src.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


class Dispatcher(Protocol):
    # False when the dispatcher never touches the exchange; the runner then skips building a provider.
    needs_provider: ClassVar[bool]

    def dispatch(self, account: Account, transaction: TransactionInfo, provider: TradeProvider | None) -> TransactionResult: ...


class DirectSwapDispatcher:
    """Verify the provider, check the pair and swap in-process."""

    needs_provider: ClassVar[bool] = True

    def __init__(self, registry: ProviderRegistry) -> None:
        self.registry = registry

    def dispatch(self, account: Account, transaction: TransactionInfo, provider: TradeProvider) -> TransactionResult:
        self.registry.verify(provider, provider.verification_payload())

        if not provider.pair_supported(transaction.pair):
            raise SwapError(f"{provider.name} does not support pair {transaction.pair}", account_id=account.id)

        try:
            return provider.swap(account, transaction)
        except AccountError:
            raise
        except Exception as e:
            raise SwapError(f"{provider.name} swap failed: {type(e).__name__}: {e}", account_id=account.id) from e


class RouterDispatcher:
    """Forward the transaction to the external transaction router as JSON."""

    needs_provider: ClassVar[bool] = False

    def __init__(
        self,
        base_url: str,
        route_path: str = "/route",
        timeout_seconds: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url = f"{base_url.rstrip('/')}/{route_path.lstrip('/')}"
        self.timeout_seconds = float(timeout_seconds)
        self.session = session or requests.Session()

    def dispatch(self, account: Account, transaction: TransactionInfo, provider: TradeProvider | None) -> TransactionResult:
        try:
            resp = self.session.post(self.url, json=transaction.to_payload(), timeout=self.timeout_seconds)
        except requests.RequestException as e:
            raise DispatchError(f"Transaction router unreachable: {e}", account_id=account.id) from e
        if not 200 <= resp.status_code < 300:
            raise DispatchError(f"Transaction router returned HTTP {resp.status_code}", account_id=account.id)

        result_id: Any = None
        try:
            body = resp.json()
            if isinstance(body, dict):
                result_id = body.get("id")
        except ValueError:
            logger.debug("Transaction router response for account %s was not JSON", account.id)
        return TransactionResult(
            id=str(result_id) if result_id else uuid4().hex,
            timestamp=datetime.now(tz=timezone.utc),
        )


def build_dispatcher(config: dict[str, Any], registry: ProviderRegistry) -> Dispatcher:
    strategy = str((config.get("dispatch") or {}).get("strategy", "router"))
    if strategy == "direct":
        return DirectSwapDispatcher(registry)

    router = config.get("router") or {}
    return RouterDispatcher(
        base_url=str(router["uri"]),
        route_path=str(router.get("route_path", "/route")),
        timeout_seconds=float(router.get("request_timeout_seconds", 10.0)),
    )
