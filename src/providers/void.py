from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import ClassVar

from src.domain.models import Account, Pair, TransactionInfo, TransactionResult
from src.ports.provider import VerificationPayload, VoidVerification
from src.providers.common import expect_payload


class VoidProvider:
    """
    Paper provider: every swap succeeds without touching an exchange.

    Useful for dry runs and for exercising the pipeline end to end.
    """

    name: ClassVar[str] = "void"
    verification_type: ClassVar[type[VerificationPayload]] = VoidVerification

    def verification_payload(self) -> VoidVerification:
        return VoidVerification()

    def verify(self, payload: VerificationPayload) -> None:
        expect_payload(payload, VoidVerification, self.name)

    def pair_supported(self, pair: Pair) -> bool:
        # Simulation accepts any pair.
        return True

    def close(self) -> None:
        pass

    def swap(self, account: Account, transaction: TransactionInfo) -> TransactionResult:
        now = time.time()
        return TransactionResult(
            id=str(int(now)).encode("ascii").hex(),
            timestamp=datetime.fromtimestamp(now, tz=timezone.utc),
        )
