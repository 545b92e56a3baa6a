from __future__ import annotations

import logging
from typing import Any, Iterator, Mapping

from pymongo.errors import PyMongoError

from src.domain.errors import DecodeError, StoreError
from src.domain.models import Account, Pair

logger = logging.getLogger(__name__)

RUNNING_FILTER = {"status.name": "running"}


def decode_account(doc: Mapping[str, Any]) -> Account:
    """Decode one bot document; raises DecodeError with the record id when it is malformed."""
    raw_id = doc.get("_id") if isinstance(doc, Mapping) else None
    account_id = str(raw_id) if raw_id is not None else None
    if not isinstance(doc, Mapping) or raw_id is None:
        raise DecodeError("account record has no _id", account_id=account_id)

    algorithm = doc.get("algorithm")
    if algorithm is None:
        raise DecodeError("account has no algorithm", account_id=account_id)

    credential = doc.get("encryptedPrivateKey")
    if not isinstance(credential, str):
        raise DecodeError("account credential must be a string", account_id=account_id)

    provider = doc.get("provider")
    if not isinstance(provider, str) or not provider.strip():
        raise DecodeError("account provider must be a non-empty string", account_id=account_id)

    interval = doc.get("interval")
    if not isinstance(interval, int) or isinstance(interval, bool) or interval <= 0:
        raise DecodeError("account interval must be a positive integer", account_id=account_id)

    try:
        pair = Pair.parse(doc.get("pair"))
    except ValueError as e:
        raise DecodeError(f"account pair is invalid: {e}", account_id=account_id) from e

    return Account(
        id=account_id,
        algorithm=str(algorithm),
        credential=credential,
        pair=pair,
        provider=provider.strip(),
        interval=interval,
    )


class AccountSource:
    """
    Lazy, single-pass stream of running accounts.

    A record that fails to decode is yielded as a DecodeError instead of raised, so the caller can
    log/count it and keep consuming. Store failures (query or cursor) raise StoreError.
    """

    def __init__(self, collection: Any) -> None:
        self.collection = collection

    def stream(self) -> Iterator[Account | DecodeError]:
        try:
            cursor = self.collection.find(RUNNING_FILTER)
        except PyMongoError as e:
            raise StoreError(f"Failed to query accounts: {e}") from e

        try:
            for doc in cursor:
                try:
                    yield decode_account(doc)
                except DecodeError as e:
                    logger.warning(f"Skipping account {e.account_id}: {e}")
                    yield e
        except PyMongoError as e:
            raise StoreError(f"Account cursor failed: {e}") from e
        finally:
            close = getattr(cursor, "close", None)
            if callable(close):
                close()
