from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class Coin:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Pair:
    base: Coin
    quote: Coin

    def __str__(self) -> str:
        return f"{self.base}-{self.quote}"

    @classmethod
    def of(cls, base: str, quote: str) -> Pair:
        return cls(Coin(base), Coin(quote))

    @classmethod
    def parse(cls, value: Any) -> Pair:
        """
        Build a pair from any of the shapes found in the account store:
        `"BTC-USD"`, `["BTC", "USD"]` or `{"A": "BTC", "B": "USD"}`.
        """
        if isinstance(value, Pair):
            return value
        if isinstance(value, str):
            parts = value.split("-")
        elif isinstance(value, Mapping):
            parts = [value.get("A"), value.get("B")]
        elif isinstance(value, (list, tuple)):
            parts = list(value)
        else:
            raise ValueError(f"pair must be a string, list or mapping; got {type(value).__name__}")

        if len(parts) != 2:
            raise ValueError(f"pair must have exactly two coins; got {len(parts)}")
        names = []
        for p in parts:
            # Coins may be stored as plain names or as {"Name": ...} documents.
            if isinstance(p, Mapping):
                p = p.get("Name") or p.get("name")
            if not isinstance(p, str) or not p.strip():
                raise ValueError(f"pair coin must be a non-empty string; got {p!r}")
            names.append(p.strip())
        return cls.of(names[0], names[1])


class TradeType(Enum):
    BUY = "buy"
    SELL = "sell"
    NO_ACTION = "no_action"

    def to_token(self) -> str:
        return _TRADE_TYPE_TO_TOKEN[self]

    @classmethod
    def from_token(cls, token: Any) -> TradeType:
        """Strict lookup: unknown tokens are an error, never a default member."""
        try:
            return _TOKEN_TO_TRADE_TYPE[token]
        except (KeyError, TypeError):
            raise ValueError(f"Unknown trade type token: {token!r}") from None


_TRADE_TYPE_TO_TOKEN: Mapping[TradeType, str] = MappingProxyType({t: t.value for t in TradeType})
_TOKEN_TO_TRADE_TYPE: Mapping[str, TradeType] = MappingProxyType({v: k for k, v in _TRADE_TYPE_TO_TOKEN.items()})


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


@dataclass(frozen=True)
class AlgorithmSignal:
    algorithm: str
    amount: float
    signal: TradeType

    @classmethod
    def from_dict(cls, raw: Any) -> AlgorithmSignal:
        if not isinstance(raw, Mapping):
            raise ValueError(f"signal must be an object; got {type(raw).__name__}")
        algorithm = raw.get("algorithm")
        amount = raw.get("amount")
        if not isinstance(algorithm, str):
            raise ValueError("signal.algorithm must be a string")
        if not _is_number(amount):
            raise ValueError("signal.amount must be a number")
        return cls(algorithm=algorithm, amount=float(amount), signal=TradeType.from_token(raw.get("signal")))


@dataclass(frozen=True)
class Account:
    id: str
    algorithm: str
    credential: str = field(repr=False)
    pair: Pair
    provider: str
    interval: int

    def to_dict(self) -> dict[str, Any]:
        # Never includes the credential.
        return {
            "id": self.id,
            "algorithm": self.algorithm,
            "pair": str(self.pair),
            "provider": self.provider,
            "interval": int(self.interval),
        }


@dataclass(frozen=True)
class TransactionInfo:
    amount: float
    action: TradeType
    pair: Pair
    provider: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Wire body understood by the transaction router."""
        payload: dict[str, Any] = {
            "Amount": float(self.amount),
            "Action": self.action.to_token(),
            "Pair": str(self.pair),
        }
        if self.provider:
            payload["Provider"] = self.provider
        return payload


@dataclass(frozen=True)
class TransactionResult:
    id: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "timestamp": self.timestamp.isoformat()}


@dataclass(frozen=True)
class NoActionSkip:
    """Builder outcome for a `no_action` signal: the account is skipped, not failed."""

    account_id: str
    algorithm: str


@dataclass(frozen=True)
class AccountOutcome:
    account_id: str | None
    status: str  # dispatched | skipped | failed
    stage: str | None = None
    detail: str | None = None
    result: TransactionResult | None = None


@dataclass
class RunReport:
    started_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))
    finished_at: datetime | None = None
    outcomes: list[AccountOutcome] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def dispatched(self) -> int:
        return self.count("dispatched")

    @property
    def skipped(self) -> int:
        return self.count("skipped")

    @property
    def failed(self) -> int:
        return self.count("failed")

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "accounts": len(self.outcomes),
            "dispatched": self.dispatched,
            "skipped": self.skipped,
            "failed": self.failed,
        }
