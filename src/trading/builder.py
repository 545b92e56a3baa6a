from __future__ import annotations

from typing import Mapping

from src.domain.errors import AlgorithmNotFound, SignalNotFound
from src.domain.models import Account, AlgorithmSignal, NoActionSkip, TradeType, TransactionInfo

# Signal amounts are scaled by a fixed multiplier before they become an order amount.
AMOUNT_MULTIPLIER = 10


def build_transaction(
    account: Account,
    directory: Mapping[str, str],
    signals: Mapping[str, AlgorithmSignal],
    *,
    multiplier: float = AMOUNT_MULTIPLIER,
) -> TransactionInfo | NoActionSkip:
    """
    Combine an account, the algorithm directory and the current signals into a transaction.

    A `no_action` signal yields `NoActionSkip` for every account: nothing is dispatched.
    """
    algorithm_name = directory.get(account.algorithm)
    if algorithm_name is None:
        raise AlgorithmNotFound(f"algorithm {account.algorithm} not in directory", account_id=account.id)

    signal = signals.get(algorithm_name)
    if signal is None:
        raise SignalNotFound(f"no signal for algorithm {algorithm_name!r}", account_id=account.id)

    if signal.signal is TradeType.NO_ACTION:
        return NoActionSkip(account_id=account.id, algorithm=algorithm_name)

    return TransactionInfo(
        amount=signal.amount * multiplier,
        action=signal.signal,
        pair=account.pair,
        provider=account.provider,
    )
