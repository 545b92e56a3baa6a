from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, ClassVar

import krakenex
import requests

from src.domain.errors import ProviderConfigError, SwapError, VerificationError
from src.domain.models import Account, Pair, TradeType, TransactionInfo, TransactionResult
from src.ports.provider import KrakenVerification, VerificationPayload
from src.providers.common import Credential, expect_payload

logger = logging.getLogger(__name__)


# Limit orders are priced at the last traded price from the public ticker.
ORDER_TYPES = ("market", "limit")


def kraken_pair(pair: Pair) -> str:
    """Kraken addresses pairs without a separator, e.g. BTC-USD -> BTCUSD."""
    return f"{pair.base}{pair.quote}".upper()


class KrakenProvider:
    name: ClassVar[str] = "kraken"
    verification_type: ClassVar[type[VerificationPayload]] = KrakenVerification

    def __init__(self, credential: Credential, *, order_type: str = "market", api: Any | None = None) -> None:
        if order_type not in ORDER_TYPES:
            raise ProviderConfigError(f"Unsupported kraken order_type: {order_type!r} (expected one of {', '.join(ORDER_TYPES)})")
        self.order_type = order_type
        self.api = api if api is not None else krakenex.API(key=credential.key, secret=credential.secret)

    def close(self) -> None:
        close = getattr(self.api, "close", None)
        if callable(close):
            close()

    def _call(self, method: str, data: dict[str, Any] | None = None, *, private: bool) -> dict[str, Any]:
        """Run one API call and return its `result`; Kraken reports failures in an `error` list."""
        query = self.api.query_private if private else self.api.query_public
        resp = query(method, data or {})
        errors = resp.get("error") or []
        if errors:
            raise RuntimeError(f"Kraken {method} failed: {', '.join(map(str, errors))}")
        return resp.get("result") or {}

    def verification_payload(self) -> KrakenVerification:
        return KrakenVerification()

    def verify(self, payload: VerificationPayload) -> None:
        data = expect_payload(payload, KrakenVerification, self.name)
        try:
            balance = self._call("Balance", private=True)
        except (requests.RequestException, RuntimeError) as e:
            raise VerificationError(f"kraken credentials could not fetch a balance: {e}") from e

        total = 0.0
        for value in balance.values():
            try:
                total += float(value)
            except (TypeError, ValueError):
                continue
        if total < data.min_balance:
            raise VerificationError(f"kraken balance {total} below required {data.min_balance}")

    def pair_supported(self, pair: Pair) -> bool:
        try:
            pairs = self._call("AssetPairs", {"pair": kraken_pair(pair)}, private=False)
        except (requests.RequestException, RuntimeError) as e:
            logger.warning(f"Kraken pair lookup failed for {pair}: {e}")
            return False
        return bool(pairs)

    def last_price(self, pair: Pair) -> str:
        ticker = self._call("Ticker", {"pair": kraken_pair(pair)}, private=False)
        for info in ticker.values():
            last = (info or {}).get("c") or []
            if last:
                return str(last[0])
        raise RuntimeError(f"Kraken Ticker returned no last trade price for {pair}")

    def swap(self, account: Account, transaction: TransactionInfo) -> TransactionResult:
        if transaction.action is TradeType.NO_ACTION:
            raise SwapError("kraken cannot place a no_action order", account_id=account.id)

        order = {
            "pair": kraken_pair(transaction.pair),
            "type": transaction.action.to_token(),
            "ordertype": self.order_type,
            "volume": str(transaction.amount),
        }
        try:
            if self.order_type == "limit":
                order["price"] = self.last_price(transaction.pair)
            result = self._call("AddOrder", order, private=True)
        except (requests.RequestException, RuntimeError) as e:
            raise SwapError(str(e), account_id=account.id) from e

        txids = result.get("txid") or []
        if not txids:
            raise SwapError("kraken AddOrder returned no txid", account_id=account.id)
        logger.info("Kraken order placed for account %s: %s", account.id, result.get("descr"))
        return TransactionResult(id=str(txids[0]), timestamp=datetime.now(tz=timezone.utc))
