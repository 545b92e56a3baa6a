"""
Error taxonomy for a transactions run.

Run-level errors (config, readiness, store) abort the whole run. Everything that derives from
`AccountError` is contained to a single account: the runner logs it and moves on.
"""

from __future__ import annotations


class TransactionsError(Exception):
    """Base class for all errors raised by this service."""


class ConfigError(TransactionsError, ValueError):
    """Missing or invalid configuration. Fatal at startup."""


class ReadinessTimeoutError(TransactionsError):
    """The transaction router never became reachable."""


class StoreError(TransactionsError):
    """A query against the account/algorithm store failed."""


class RunInProgressError(TransactionsError):
    """A run was requested while another one still holds the run lock."""


class AccountError(TransactionsError):
    """A failure scoped to one account; never halts the run."""

    stage = "account"

    def __init__(self, message: str, *, account_id: str | None = None) -> None:
        super().__init__(message)
        self.account_id = account_id


class DecodeError(AccountError):
    stage = "decode"


class RemoteError(AccountError):
    stage = "signals"


class ResolutionError(AccountError):
    stage = "build"


class AlgorithmNotFound(ResolutionError):
    pass


class SignalNotFound(ResolutionError):
    pass


class ProviderConfigError(AccountError):
    """The account names a provider we do not know how to build."""

    stage = "provider"


class CredentialFormatError(AccountError):
    stage = "provider"


class VerificationError(AccountError):
    stage = "verify"


class SwapError(AccountError):
    stage = "swap"


class DispatchError(AccountError):
    stage = "dispatch"
