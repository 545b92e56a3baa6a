from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, ClassVar

import requests

from src.domain.errors import SwapError, VerificationError
from src.domain.models import Account, Pair, TradeType, TransactionInfo, TransactionResult
from src.ports.provider import CoinbaseVerification, VerificationPayload
from src.providers.common import Credential, expect_payload

logger = logging.getLogger(__name__)

COINBASE_SANDBOX_URL = "https://api-public.sandbox.exchange.coinbase.com"


class CoinbaseProvider:
    """
    Coinbase Exchange provider.

    Trading is disabled unless explicitly enabled in config: while disabled, `verify` always fails,
    so `swap` never reaches the exchange. Enabling it switches `verify` to a real signed request.
    """

    name: ClassVar[str] = "coinbase"
    verification_type: ClassVar[type[VerificationPayload]] = CoinbaseVerification

    def __init__(
        self,
        credential: Credential,
        *,
        base_url: str = COINBASE_SANDBOX_URL,
        passphrase: str = "",
        trading_enabled: bool = False,
        timeout_seconds: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.credential = credential
        self.base_url = base_url.rstrip("/")
        self.passphrase = passphrase
        self.trading_enabled = bool(trading_enabled)
        self.timeout_seconds = float(timeout_seconds)
        self.session = session or requests.Session()

    def close(self) -> None:
        self.session.close()

    def sign(self, method: str, request_path: str, body: dict[str, Any] | None = None, *, timestamp: int | None = None) -> dict[str, str]:
        """Build the CB-ACCESS-* headers for one request (HMAC-SHA256 over ts + method + path + body)."""
        ts = int(time.time()) if timestamp is None else int(timestamp)
        try:
            secret = base64.b64decode(self.credential.secret, validate=True)
        except (binascii.Error, ValueError) as e:
            raise VerificationError(f"coinbase secret is not valid base64: {e}") from e

        body_str = json.dumps(body, separators=(",", ":")) if body else ""
        message = f"{ts}{method.upper()}{request_path}{body_str}".encode("utf-8")
        signature = base64.b64encode(hmac.new(secret, message, hashlib.sha256).digest()).decode("ascii")
        return {
            "CB-ACCESS-KEY": self.credential.key,
            "CB-ACCESS-SIGN": signature,
            "CB-ACCESS-TIMESTAMP": str(ts),
            "CB-ACCESS-PASSPHRASE": self.passphrase,
        }

    def _request(self, method: str, request_path: str, body: dict[str, Any] | None = None) -> requests.Response:
        headers = self.sign(method, request_path, body)
        headers["Content-Type"] = "application/json"
        return self.session.request(
            method,
            f"{self.base_url}{request_path}",
            headers=headers,
            data=json.dumps(body, separators=(",", ":")) if body else None,
            timeout=self.timeout_seconds,
        )

    def verification_payload(self) -> CoinbaseVerification:
        return CoinbaseVerification()

    def verify(self, payload: VerificationPayload) -> None:
        data = expect_payload(payload, CoinbaseVerification, self.name)
        if not self.trading_enabled:
            raise VerificationError("coinbase trading disabled")

        try:
            resp = self._request("GET", data.request_path)
        except requests.RequestException as e:
            raise VerificationError(f"coinbase verification request failed: {e}") from e
        if not resp.ok:
            raise VerificationError(f"coinbase rejected credentials: HTTP {resp.status_code}")

    def pair_supported(self, pair: Pair) -> bool:
        if not self.trading_enabled:
            return False
        try:
            resp = self.session.get(f"{self.base_url}/products/{pair}", timeout=self.timeout_seconds)
        except requests.RequestException as e:
            logger.warning(f"Coinbase product lookup failed for {pair}: {e}")
            return False
        if not resp.ok:
            return False
        try:
            product = resp.json()
        except ValueError:
            return False
        return isinstance(product, dict) and not product.get("trading_disabled", False)

    def swap(self, account: Account, transaction: TransactionInfo) -> TransactionResult:
        # Credentials are verified once, before the swap, by whoever dispatches it.
        if not self.trading_enabled:
            raise VerificationError("coinbase trading disabled")
        if transaction.action is TradeType.NO_ACTION:
            raise SwapError("coinbase cannot place a no_action order", account_id=account.id)

        order = {
            "type": "market",
            "side": transaction.action.to_token(),
            "product_id": str(transaction.pair),
            "size": str(transaction.amount),
        }
        try:
            resp = self._request("POST", "/orders", order)
        except requests.RequestException as e:
            raise SwapError(f"coinbase order request failed: {e}", account_id=account.id) from e
        if not resp.ok:
            raise SwapError(f"coinbase rejected order: HTTP {resp.status_code}", account_id=account.id)

        try:
            body = resp.json()
        except ValueError as e:
            raise SwapError("coinbase order response was not JSON", account_id=account.id) from e
        order_id = body.get("id") if isinstance(body, dict) else None
        if not order_id:
            raise SwapError("coinbase order response has no id", account_id=account.id)
        return TransactionResult(id=str(order_id), timestamp=datetime.now(tz=timezone.utc))
