from __future__ import annotations

from dataclasses import dataclass, field
from typing import TypeVar

from src.domain.errors import CredentialFormatError, VerificationError
from src.ports.provider import VerificationPayload

P = TypeVar("P", bound=VerificationPayload)


@dataclass(frozen=True)
class Credential:
    key: str
    secret: str = field(repr=False)


def parse_credential(raw: str | None, *, account_id: str | None = None) -> Credential:
    """
    Split an opaque `"<key>:<secret>"` credential.

    Exactly two non-empty fields are required; anything else fails closed.
    The error message never echoes the credential itself.
    """
    if not isinstance(raw, str):
        raise CredentialFormatError("credential must be a string", account_id=account_id)
    parts = raw.split(":")
    if len(parts) != 2:
        raise CredentialFormatError(
            f"credential must have exactly 2 colon-separated fields; got {len(parts)}",
            account_id=account_id,
        )
    key, secret = parts
    if not key or not secret:
        raise CredentialFormatError("credential key and secret must be non-empty", account_id=account_id)
    return Credential(key=key, secret=secret)


def expect_payload(payload: VerificationPayload, expected: type[P], provider: str) -> P:
    if type(payload) is not expected:
        raise VerificationError(
            f"{provider} provider cannot verify a {type(payload).__name__} payload "
            f"(expected {expected.__name__})"
        )
    return payload
