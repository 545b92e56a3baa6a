from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from src.domain.errors import ProviderConfigError, VerificationError
from src.ports.provider import TradeProvider, VerificationPayload
from src.providers.coinbase import COINBASE_SANDBOX_URL, CoinbaseProvider
from src.providers.common import parse_credential
from src.providers.kraken import KrakenProvider
from src.providers.void import VoidProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Builds provider instances from an account's provider name + opaque credential.

    With `cache_instances` enabled, repeated (name, credential) pairs within a run reuse one
    instance; call `clear()` between runs so credentials are never held across runs.
    """

    def __init__(self, config: dict[str, Any] | None = None, *, cache_instances: bool = False) -> None:
        self.config = config or {}
        self.cache_instances = bool(cache_instances)
        self._cache: dict[tuple[str, str], TradeProvider] = {}
        self._open: list[TradeProvider] = []
        self._cache_lock = threading.Lock()
        self._builders: dict[str, Callable[[str, str | None], TradeProvider]] = {
            "void": self._build_void,
            "coinbase": self._build_coinbase,
            "kraken": self._build_kraken,
        }

    @property
    def names(self) -> list[str]:
        return sorted(self._builders)

    def build(self, provider_name: str, credential: str, *, account_id: str | None = None) -> TradeProvider:
        name = str(provider_name or "").strip().lower()
        builder = self._builders.get(name)
        if builder is None:
            raise ProviderConfigError(f"Unsupported provider: {provider_name!r}", account_id=account_id)

        if not self.cache_instances:
            return self._track(builder(credential, account_id))

        key = (name, credential)
        with self._cache_lock:
            provider = self._cache.get(key)
        if provider is not None:
            return provider
        # Build outside the lock; a racing duplicate is closed straight away.
        provider = builder(credential, account_id)
        with self._cache_lock:
            cached = self._cache.setdefault(key, provider)
        if cached is not provider:
            provider.close()
            return cached
        return self._track(provider)

    def verify(self, provider: TradeProvider, payload: VerificationPayload) -> None:
        """Only let a payload through to the provider that declared its type."""
        expected = provider.verification_type
        if type(payload) is not expected:
            raise VerificationError(
                f"{provider.name} provider expects {expected.__name__}, got {type(payload).__name__}"
            )
        provider.verify(payload)

    def clear(self) -> None:
        """Drop cached instances and close every provider built since the last clear."""
        with self._cache_lock:
            built, self._open = self._open, []
            self._cache.clear()
        for provider in built:
            provider.close()

    def _track(self, provider: TradeProvider) -> TradeProvider:
        with self._cache_lock:
            self._open.append(provider)
        return provider

    # -------------------
    # Builders
    # -------------------

    def _provider_cfg(self, name: str) -> dict[str, Any]:
        return (self.config.get(name) or {}) if isinstance(self.config, dict) else {}

    def _build_void(self, credential: str, account_id: str | None) -> TradeProvider:
        return VoidProvider()

    def _build_coinbase(self, credential: str, account_id: str | None) -> TradeProvider:
        cfg = self._provider_cfg("coinbase")
        return CoinbaseProvider(
            parse_credential(credential, account_id=account_id),
            base_url=str(cfg.get("base_url", COINBASE_SANDBOX_URL)),
            passphrase=str(cfg.get("passphrase", "")),
            trading_enabled=bool(cfg.get("trading_enabled", False)),
            timeout_seconds=float(cfg.get("timeout_seconds", 10.0)),
        )

    def _build_kraken(self, credential: str, account_id: str | None) -> TradeProvider:
        cfg = self._provider_cfg("kraken")
        return KrakenProvider(
            parse_credential(credential, account_id=account_id),
            order_type=str(cfg.get("order_type", "market")),
        )
