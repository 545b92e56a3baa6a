from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Protocol

from src.domain.models import Account, Pair, TransactionInfo, TransactionResult


@dataclass(frozen=True)
class VerificationPayload:
    """Base for the tagged payloads accepted by `TradeProvider.verify`."""

    kind: ClassVar[str] = "base"


@dataclass(frozen=True)
class VoidVerification(VerificationPayload):
    kind: ClassVar[str] = "void"


@dataclass(frozen=True)
class CoinbaseVerification(VerificationPayload):
    kind: ClassVar[str] = "coinbase"
    request_path: str = "/accounts"


@dataclass(frozen=True)
class KrakenVerification(VerificationPayload):
    kind: ClassVar[str] = "kraken"
    min_balance: float = 0.0


class TradeProvider(Protocol):
    name: ClassVar[str]
    verification_type: ClassVar[type[VerificationPayload]]

    def verification_payload(self) -> VerificationPayload: ...

    def verify(self, payload: VerificationPayload) -> None: ...

    def pair_supported(self, pair: Pair) -> bool: ...

    def swap(self, account: Account, transaction: TransactionInfo) -> TransactionResult: ...

    def close(self) -> None: ...
